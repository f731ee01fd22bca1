from decimal import Decimal
from typing import Any, Dict, Iterable, Optional
from datetime import datetime

import models

# Rough equivalences shown alongside the CO2 figure
KG_CO2_PER_TREE = Decimal("22")  # one tree absorbs ~22 kg CO2 a year
WATER_LITERS_PER_KG_CO2 = Decimal("50")
ENERGY_KWH_PER_KG_CO2 = Decimal("2.3")


def compute_impact(orders: Iterable[models.Order], member_since: Optional[datetime] = None) -> Dict[str, Any]:
    carbon_saved = Decimal("0")
    total_spent = Decimal("0")
    total_orders = 0
    for order in orders:
        carbon_saved += Decimal(order.total_carbon_saved or 0)
        total_spent += Decimal(order.total_amount)
        total_orders += 1

    return {
        "carbon_saved": round(float(carbon_saved), 1),
        "water_saved": round(float(carbon_saved * WATER_LITERS_PER_KG_CO2)),
        "trees_equivalent": round(float(carbon_saved / KG_CO2_PER_TREE), 1),
        "energy_saved": round(float(carbon_saved * ENERGY_KWH_PER_KG_CO2), 1),
        "total_orders": total_orders,
        "total_spent": round(float(total_spent), 2),
        "member_since": member_since.year if member_since else None,
    }
