"""Authentication endpoints and the customer's session."""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel

from shared.api_client import ApiError, BaseApiClient

logger = logging.getLogger(__name__)

ADMIN_ROLE = "Admin"


class AuthSession(BaseModel):
    """Token, user id and role the browser app kept in cookies, plus the buyer email."""

    token: Optional[str] = None
    user_id: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def is_admin(self) -> bool:
        # UX gating only, the store API enforces roles
        return self.is_authenticated and self.role == ADMIN_ROLE

    def get_token(self) -> Optional[str]:
        return self.token

    def login(self, token: str, user_details: Dict[str, Any]) -> None:
        roles = user_details.get("roles") or []
        self.token = token
        self.user_id = str(user_details["id"]) if user_details.get("id") is not None else None
        self.role = roles[0] if roles else None
        self.email = user_details.get("email")
        self.name = user_details.get("name")

    def logout(self) -> None:
        self.token = None
        self.user_id = None
        self.role = None
        self.email = None
        self.name = None


def _camel_keys(details: Dict[str, Any]) -> Dict[str, Any]:
    return {k[:1].lower() + k[1:]: v for k, v in details.items()}


class AuthApi:
    def __init__(self, client: BaseApiClient, session: AuthSession):
        self.client = client
        self.session = session

    def register(self, user: Dict[str, Any]) -> Any:
        return self.client.post("Auth/register", json=user, fallback="Registration failed")

    def login(self, credentials: Dict[str, Any]) -> AuthSession:
        body = self.client.post("Auth/login", json=credentials, fallback="Login failed")
        if not isinstance(body, dict) or not body.get("token"):
            raise ApiError("Login failed", payload=body)

        details = _camel_keys(body.get("userDetails") or {})
        self.session.login(body["token"], details)
        logger.info(f"User {self.session.user_id} logged in with role {self.session.role}")
        return self.session

    def logout(self) -> None:
        logger.info(f"User {self.session.user_id} logged out")
        self.session.logout()

    def get_profile(self) -> Any:
        return self.client.get("Customers/profile")

    def update_profile(self, details: Dict[str, Any]) -> Any:
        return self.client.patch("Customers/profile", json=details)
