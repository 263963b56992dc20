"""Shared API dependencies: session verification and role gates."""

from collections.abc import Callable

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from authcore.database import get_session
from authcore.models.user import User
from authcore.services import vault
from authcore.services.errors import Unauthorized
from authcore.services.session import Principal, require_role as check_role, verify_session

bearer_scheme = HTTPBearer(auto_error=False)


def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Validate the Bearer session token and return who it speaks for."""
    token = credentials.credentials if credentials else None
    return verify_session(token)


def get_current_user(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
) -> User:
    user = vault.get_user(session, principal.user_id)
    if user is None:
        raise Unauthorized("User not found.")
    return user


def require_role(role: str) -> Callable[..., Principal]:
    """Dependency factory: 401 without a session, 403 with the wrong role."""

    def _gate(principal: Principal = Depends(get_principal)) -> Principal:
        return check_role(principal, role)

    return _gate


require_admin = require_role("admin")
