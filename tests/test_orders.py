import pytest

from conftest import bearer

SHIPPING = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "address": "12 Analytical Row",
    "city": "London",
    "state": "LDN",
    "zipCode": "N1 9GU",
}


@pytest.fixture
def cart(client, create_product, add_to_cart):
    """Buyer cart: a = P1 qty 2 @ $10 (3.5 kg), b = P2 qty 1 @ $5 (1.25 kg)."""
    p1 = create_product(seller="seller-one", title="P1", price=10, carbonSaved=3.5)
    p2 = create_product(seller="seller-two", title="P2", price=5, carbonSaved=1.25)
    a = add_to_cart("buyer", p1["id"], quantity=2)
    b = add_to_cart("buyer", p2["id"], quantity=1)
    return {"p1": p1, "p2": p2, "a": a, "b": b}


def place(client, cart_item_ids, user="buyer", payment_intent_id="pi_123"):
    return client.post(
        "/api/create-order",
        json={
            "cartItemIds": cart_item_ids,
            "shippingAddress": SHIPPING,
            "paymentIntentId": payment_intent_id,
        },
        headers=bearer(user),
    )


def test_place_order_totals(client, cart):
    response = place(client, [cart["a"]["id"], cart["b"]["id"]])
    assert response.status_code == 201
    order_id = response.json()["orderId"]

    order = client.get(f"/api/orders/{order_id}", headers=bearer("buyer")).json()
    assert order["totalAmount"] == 25.0
    assert order["totalCarbonSaved"] == 2 * 3.5 + 1.25
    assert order["status"] == "confirmed"
    assert order["paymentIntentId"] == "pi_123"
    assert order["shippingAddress"]["zipCode"] == "N1 9GU"

    lines = {item["productId"]: item for item in order["items"]}
    assert lines[cart["p1"]["id"]]["price"] == 10
    assert lines[cart["p1"]["id"]]["quantity"] == 2
    assert lines[cart["p1"]["id"]]["sellerId"] == "seller-one"
    assert lines[cart["p2"]["id"]]["carbonSaved"] == 1.25
    assert lines[cart["p2"]["id"]]["seller"]["id"] == "seller-two"
    assert sum(i["price"] * i["quantity"] for i in order["items"]) == order["totalAmount"]


def test_place_order_clears_consumed_cart_items(client, cart, create_product, add_to_cart):
    extra = add_to_cart("buyer", create_product(title="Keep me")["id"])

    assert place(client, [cart["a"]["id"], cart["b"]["id"]]).status_code == 201

    remaining = client.get("/api/cart", headers=bearer("buyer")).json()
    assert [item["id"] for item in remaining] == [extra["id"]]


def test_place_order_subset(client, cart):
    response = place(client, [cart["b"]["id"]])
    order = client.get(f"/api/orders/{response.json()['orderId']}", headers=bearer("buyer")).json()

    assert order["totalAmount"] == 5.0
    remaining = client.get("/api/cart", headers=bearer("buyer")).json()
    assert [item["id"] for item in remaining] == [cart["a"]["id"]]


def test_place_order_updates_buyer_carbon_counter(client, cart):
    place(client, [cart["a"]["id"], cart["b"]["id"]])

    user = client.get("/api/auth/user", headers=bearer("buyer")).json()
    assert user["totalCarbonSaved"] == 8.25


def test_place_order_marks_products_sold(client, cart):
    place(client, [cart["a"]["id"]])

    listed = [p["id"] for p in client.get("/api/products").json()]
    assert cart["p1"]["id"] not in listed
    assert cart["p2"]["id"] in listed


def test_order_snapshot_survives_price_change(client, cart):
    order_id = place(client, [cart["a"]["id"], cart["b"]["id"]]).json()["orderId"]

    response = client.patch(f"/api/products/{cart['p1']['id']}", json={"price": 99}, headers=bearer("seller-one"))
    assert response.status_code == 200

    order = client.get(f"/api/orders/{order_id}", headers=bearer("buyer")).json()
    assert order["totalAmount"] == 25.0
    line = next(i for i in order["items"] if i["productId"] == cart["p1"]["id"])
    assert line["price"] == 10
    assert line["product"]["price"] == 99


def test_place_order_with_disjoint_ids(client, cart, create_product, add_to_cart):
    someone_else = add_to_cart("other", create_product(title="Not yours")["id"])

    response = place(client, ["missing-id", someone_else["id"]])
    assert response.status_code == 400
    assert response.json()["detail"] == "No valid cart items found"

    assert client.get("/api/orders", headers=bearer("buyer")).json() == []
    assert len(client.get("/api/cart", headers=bearer("buyer")).json()) == 2
    assert len(client.get("/api/cart", headers=bearer("other")).json()) == 1


def test_place_order_with_empty_selection(client, cart):
    assert place(client, []).status_code == 400


def test_place_order_requires_shipping_address(client, cart):
    response = client.post(
        "/api/create-order",
        json={"cartItemIds": [cart["a"]["id"]], "shippingAddress": {"firstName": "Ada"}},
        headers=bearer("buyer"),
    )
    assert response.status_code == 400
    assert client.get("/api/orders", headers=bearer("buyer")).json() == []


def test_orders_are_scoped_to_buyer(client, cart):
    order_id = place(client, [cart["a"]["id"]]).json()["orderId"]

    assert len(client.get("/api/orders", headers=bearer("buyer")).json()) == 1
    assert client.get("/api/orders", headers=bearer("other")).json() == []
    assert client.get(f"/api/orders/{order_id}", headers=bearer("other")).status_code == 404


def test_get_missing_order(client):
    assert client.get("/api/orders/nope", headers=bearer("buyer")).status_code == 404


def test_update_order_status(client, cart):
    order_id = place(client, [cart["a"]["id"]]).json()["orderId"]

    response = client.patch(f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=bearer("seller-one"))
    assert response.status_code == 200
    assert response.json()["status"] == "shipped"

    response = client.patch(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=bearer("buyer"))
    assert response.json()["status"] == "cancelled"


def test_update_order_status_rejects_strangers_and_unknown_values(client, cart):
    order_id = place(client, [cart["a"]["id"]]).json()["orderId"]

    assert client.patch(
        f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=bearer("seller-two")
    ).status_code == 403
    assert client.patch(
        f"/api/orders/{order_id}/status", json={"status": "lost"}, headers=bearer("buyer")
    ).status_code == 400


def test_sold_product_cannot_be_deleted(client, cart):
    place(client, [cart["a"]["id"]])

    response = client.delete(f"/api/products/{cart['p1']['id']}", headers=bearer("seller-one"))
    assert response.status_code == 409
