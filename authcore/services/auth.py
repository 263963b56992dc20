"""Primary authentication: password hashing, email+password login, first-admin bootstrap."""

import hmac
import logging
from dataclasses import dataclass

import bcrypt
from sqlmodel import Session

from authcore.config import settings
from authcore.models.user import User
from authcore.services import vault
from authcore.services.errors import (
    BootstrapClosed,
    BootstrapForbidden,
    BootstrapUnavailable,
    InvalidCredentials,
)
from authcore.services.session import issue_session
from authcore.services.tokens import PURPOSE_TOTP_CHALLENGE, challenge_ttl, issue_token

logger = logging.getLogger(__name__)

# Checked against when the email is unknown so both failure paths cost one bcrypt round
_DUMMY_HASH = bcrypt.hashpw(b"authcore-dummy-password", bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def hash_password(password: str) -> str:
    pw = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw, bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    pw = plain.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw, hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def user_summary(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "role": user.role,
        "totpEnabled": bool(user.totp_enabled),
    }


@dataclass
class Authenticated:
    """A full session was issued."""

    token: str
    user: dict


@dataclass
class StepUpRequired:
    """Password accepted, but a TOTP code must follow."""

    challenge_token: str


def authenticated(user: User) -> Authenticated:
    return Authenticated(token=issue_session(user.id, user.role), user=user_summary(user))


def authenticate_password(session: Session, email: str, password: str) -> Authenticated | StepUpRequired:
    """Check email+password.

    Unknown email and wrong password fail identically with InvalidCredentials.
    Nothing is written on either path.
    """
    if not password:
        raise InvalidCredentials()

    user = vault.get_user_by_email(session, email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        logger.warning("Login failed: unknown account")
        raise InvalidCredentials()

    if not verify_password(password, user.hashed_password):
        logger.warning(f"Login failed: bad password for user {user.id}")
        raise InvalidCredentials()

    if user.totp_enabled:
        challenge = issue_token(str(user.id), PURPOSE_TOTP_CHALLENGE, ttl=challenge_ttl())
        logger.info(f"Password accepted for user {user.id}; TOTP step-up required")
        return StepUpRequired(challenge_token=challenge)

    logger.info(f"User {user.id} logged in with password")
    return authenticated(user)


def bootstrap_admin(session: Session, email: str, password: str, provided_token: str | None) -> Authenticated:
    """Create the very first user as admin.

    Only allowed while the vault is empty and the caller knows the configured
    bootstrap token.
    """
    if not settings.bootstrap_token:
        raise BootstrapUnavailable()
    if not provided_token or not hmac.compare_digest(provided_token.encode(), settings.bootstrap_token.encode()):
        raise BootstrapForbidden()
    return create_first_admin(session, email, password)


def create_first_admin(session: Session, email: str, password: str) -> Authenticated:
    if vault.count_users(session) > 0:
        raise BootstrapClosed()
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters")

    user = vault.create_user(session, email, hash_password(password), role="admin")
    logger.info(f"Bootstrapped first admin user {user.id}")
    return authenticated(user)
