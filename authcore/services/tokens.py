"""Signed bearer tokens: sessions and short-lived step-up challenges.

Every token is a JWT signed with the one shared ``jwt_secret``. The
``purpose`` claim tells sessions and challenges apart, so a challenge can
never be presented where a session is expected (and vice versa).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from authcore.config import settings
from authcore.services.errors import TokenExpired, TokenInvalid

PURPOSE_SESSION = "session"
PURPOSE_TOTP_CHALLENGE = "totp-challenge"
PURPOSE_PASSKEY_CHALLENGE = "passkey-challenge"

_RESERVED = {"sub", "purpose", "exp", "iat"}


@dataclass
class TokenClaims:
    subject: str
    purpose: str
    claims: dict = field(default_factory=dict)


def challenge_ttl() -> timedelta:
    return timedelta(minutes=settings.challenge_expire_minutes)


def issue_token(subject: str, purpose: str, claims: dict | None = None, ttl: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (ttl if ttl is not None else timedelta(minutes=settings.jwt_expire_minutes))
    payload = {k: v for k, v in (claims or {}).items() if k not in _RESERVED}
    payload.update({"sub": str(subject), "purpose": purpose, "iat": now, "exp": expire})
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenClaims:
    """Verify signature and expiry. Raises TokenExpired or TokenInvalid."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as e:
        raise TokenExpired() from e
    except JWTError as e:
        raise TokenInvalid() from e

    subject = payload.get("sub")
    purpose = payload.get("purpose")
    if not subject or not isinstance(purpose, str):
        raise TokenInvalid()
    claims = {k: v for k, v in payload.items() if k not in _RESERVED}
    return TokenClaims(subject=subject, purpose=purpose, claims=claims)


def expect_purpose(token: str, purpose: str) -> TokenClaims:
    """Decode a token and require a specific purpose tag."""
    decoded = decode_token(token)
    if decoded.purpose != purpose:
        raise TokenInvalid()
    return decoded
