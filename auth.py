import logging
import os
from typing import Any, Dict, Optional

import requests
from fastapi import Depends
from fastapi import HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

import crud
import models
from database import get_db

logger = logging.getLogger(__name__)

AUTH_SERVICE_URL = os.getenv("AUTH_SERVICE_URL", "http://idp_auth:8000")

# login lives on the identity service; the token only needs to be read here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{AUTH_SERVICE_URL}/login", auto_error=False)


class AuthServiceClient:
    """Client for the external identity provider that owns login and sessions"""

    def __init__(self):
        self.base_url = AUTH_SERVICE_URL
        self.timeout = float(os.getenv("AUTH_SERVICE_TIMEOUT", 10))

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify a token with the auth service.
        Returns the token claims if valid, None otherwise.
        """
        try:
            response = requests.post(
                f"{self.base_url}/verify-token",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException:
            logger.exception("Auth service unreachable", extra={"auth_service_url": self.base_url})
            return None

        if response.status_code != 200:
            return None

        return response.json()

    def get_current_user_id(self, token: Optional[str] = Depends(oauth2_scheme)) -> str:
        """
        Verify the bearer token with the auth service and return the user id.
        This doesn't touch the local database.
        """
        return self._user_id_from_claims(self._claims_for(token))

    def get_current_user(self, token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> models.User:
        """
        Get the local user record for the authenticated subject, creating it on
        first sight and refreshing the profile fields the provider sends.
        """
        claims = self._claims_for(token)
        return crud.upsert_user(db, self._user_id_from_claims(claims), claims)

    def _claims_for(self, token: Optional[str]) -> Dict[str, Any]:
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
        if not token:
            raise credentials_exception

        claims = self.verify_token(token)
        if not claims or self._user_id_from_claims(claims) is None:
            raise credentials_exception
        return claims

    @staticmethod
    def _user_id_from_claims(claims: Dict[str, Any]) -> Optional[str]:
        user_id = claims.get("user_id", claims.get("sub"))
        return str(user_id) if user_id is not None else None
