"""Session issuer and verifier: the one place final session tokens are minted."""

from dataclasses import dataclass
from datetime import timedelta

from authcore.services.errors import Forbidden, Unauthorized
from authcore.services.tokens import PURPOSE_SESSION, expect_purpose, issue_token


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str


def issue_session(user_id: int | str, role: str, ttl: timedelta | None = None) -> str:
    return issue_token(str(user_id), PURPOSE_SESSION, {"role": role}, ttl=ttl)


def verify_session(token: str | None) -> Principal:
    """Return the principal a session token speaks for, or raise Unauthorized.

    Challenge tokens carry the same signature but a different purpose and are
    rejected here.
    """
    if not token:
        raise Unauthorized("Authorization token is required.")
    decoded = expect_purpose(token, PURPOSE_SESSION)
    role = decoded.claims.get("role")
    if not isinstance(role, str):
        raise Unauthorized()
    return Principal(user_id=decoded.subject, role=role)


def require_role(principal: Principal, role: str) -> Principal:
    if principal.role != role:
        raise Forbidden(f"{role.capitalize()} role is required.")
    return principal
