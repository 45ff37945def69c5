"""
Authentication context
"""
from typing import Optional, Protocol
from pydantic import BaseModel


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


class AuthContext(Protocol):
    def get_current_user(self) -> Optional[CurrentUser]:
        ...


class StaticAuthContext:
    """Auth context with a fixed user (or none); used by background jobs and tests"""

    def __init__(self, user: Optional[CurrentUser] = None):
        self.user = user

    def get_current_user(self) -> Optional[CurrentUser]:
        return self.user


def auth_from_headers(user_id: Optional[str], email: Optional[str] = None) -> StaticAuthContext:
    """Build the request's auth context from gateway-supplied identity headers"""
    if not user_id:
        return StaticAuthContext(None)
    return StaticAuthContext(CurrentUser(id=user_id, email=email))
