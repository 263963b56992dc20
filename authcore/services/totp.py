"""TOTP step-up: enrollment lifecycle and the second half of a password login.

Per-user states: no secret -> pending confirmation -> enabled; disabling
clears the secret and returns to no secret. Only ``totp_enabled`` decides
whether a password login needs a code, so a pending secret has no effect on
login until it is confirmed.
"""

import base64
import io
import logging
from dataclasses import dataclass
from datetime import datetime

import pyotp
import qrcode
from sqlmodel import Session

from authcore.config import settings
from authcore.models.user import User
from authcore.services import vault
from authcore.services.auth import Authenticated, authenticated
from authcore.services.errors import (
    AlreadyEnabled,
    InvalidCode,
    NoPendingSecret,
    NotEnabled,
    NotFound,
    Unauthorized,
)
from authcore.services.tokens import PURPOSE_TOTP_CHALLENGE, expect_purpose

logger = logging.getLogger(__name__)


def generate_totp_secret() -> str:
    return pyotp.random_base32()


def get_totp_uri(secret: str, email: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(
        name=email,
        issuer_name=settings.totp_issuer,
    )


def verify_totp(secret: str, code: str, for_time: datetime | int | None = None) -> bool:
    """Accept the code for the current 30s step or one step either side."""
    if not code or not code.isdigit():
        return False
    totp = pyotp.TOTP(secret)
    return totp.verify(code, for_time=for_time, valid_window=1)


def qr_data_url(uri: str) -> str:
    """Render the otpauth URI as a PNG data URL for authenticator apps to scan."""
    qr = qrcode.QRCode(box_size=6, border=2)
    qr.add_data(uri)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


@dataclass
class TotpEnrollment:
    secret: str
    otpauth_url: str
    qr_code_data_url: str


def _load_user(session: Session, user_id: int | str) -> User:
    user = vault.get_user(session, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def enroll(session: Session, user_id: int | str) -> TotpEnrollment:
    """Start (or restart) enrollment with a fresh secret. Does not enable 2FA."""
    user = _load_user(session, user_id)
    if user.totp_enabled:
        raise AlreadyEnabled()

    secret = generate_totp_secret()
    vault.set_totp_secret(session, user, secret)
    uri = get_totp_uri(secret, user.email)
    logger.info(f"TOTP enrollment started for user {user.id}")
    return TotpEnrollment(secret=secret, otpauth_url=uri, qr_code_data_url=qr_data_url(uri))


def confirm(session: Session, user_id: int | str, code: str) -> None:
    """Enable 2FA once the first code from the authenticator app checks out."""
    user = _load_user(session, user_id)
    if user.totp_enabled:
        raise AlreadyEnabled("2FA is already enabled.")

    secret = vault.get_totp_secret(user)
    if not secret:
        raise NoPendingSecret()

    if not verify_totp(secret, code):
        logger.warning(f"TOTP confirm failed for user {user.id}")
        raise InvalidCode("Invalid authenticator code. Make sure the code is current.")

    vault.enable_totp(session, user)
    logger.info(f"TOTP enabled for user {user.id}")


def disable(session: Session, user_id: int | str, code: str) -> None:
    user = _load_user(session, user_id)
    secret = vault.get_totp_secret(user)
    if not user.totp_enabled or not secret:
        raise NotEnabled()

    if not verify_totp(secret, code):
        logger.warning(f"TOTP disable failed for user {user.id}")
        raise InvalidCode()

    vault.clear_totp(session, user)
    logger.info(f"TOTP disabled for user {user.id}")


def complete_login(session: Session, challenge_token: str, code: str) -> Authenticated:
    """Trade a totp-challenge token plus a current code for a session."""
    decoded = expect_purpose(challenge_token, PURPOSE_TOTP_CHALLENGE)

    user = vault.get_user(session, decoded.subject)
    if user is None or not user.totp_enabled:
        raise Unauthorized("Invalid request.")
    secret = vault.get_totp_secret(user)
    if not secret:
        raise Unauthorized("Invalid request.")

    if not verify_totp(secret, code):
        logger.warning(f"TOTP login failed for user {user.id}")
        raise InvalidCode()

    logger.info(f"User {user.id} completed TOTP login")
    return authenticated(user)
