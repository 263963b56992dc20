"""Credential vault: the durable identity record behind every auth flow.

Only persistence lives here. Callers pass the request's SQLModel session and
decide what the reads and writes mean.
"""

import logging

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from authcore.models.passkey import PasskeyCredential
from authcore.models.user import ROLES, User
from authcore.services.encryption import decrypt_secret, encrypt_secret

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user(session: Session, user_id: int | str) -> User | None:
    try:
        return session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def get_user_by_email(session: Session, email: str) -> User | None:
    return session.exec(select(User).where(User.email == normalize_email(email))).first()


def count_users(session: Session) -> int:
    return session.exec(select(func.count()).select_from(User)).one()


def create_user(session: Session, email: str, hashed_password: str, role: str = "operator") -> User:
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    user = User(email=normalize_email(email), hashed_password=hashed_password, role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


# ---------------------------------------------------------------------------
# TOTP secret
# ---------------------------------------------------------------------------

def get_totp_secret(user: User) -> str | None:
    if not user.totp_secret_encrypted:
        return None
    return decrypt_secret(user.totp_secret_encrypted)


def set_totp_secret(session: Session, user: User, secret: str) -> None:
    """Store a pending (not yet enabled) secret, replacing any earlier one."""
    user.totp_secret_encrypted = encrypt_secret(secret)
    user.totp_enabled = False
    session.add(user)
    session.commit()
    session.refresh(user)


def enable_totp(session: Session, user: User) -> None:
    if not user.totp_secret_encrypted:
        raise ValueError("Cannot enable TOTP without a stored secret")
    user.totp_enabled = True
    session.add(user)
    session.commit()
    session.refresh(user)


def clear_totp(session: Session, user: User) -> None:
    user.totp_secret_encrypted = None
    user.totp_enabled = False
    session.add(user)
    session.commit()
    session.refresh(user)


# ---------------------------------------------------------------------------
# Passkeys
# ---------------------------------------------------------------------------

def list_passkeys(session: Session, user_id: int) -> list[PasskeyCredential]:
    stmt = (
        select(PasskeyCredential)
        .where(PasskeyCredential.user_id == user_id)
        .order_by(PasskeyCredential.id)
    )
    return list(session.exec(stmt).all())


def get_passkey(session: Session, user_id: int, credential_id: str) -> PasskeyCredential | None:
    """Look up a credential, scoped to its owner."""
    stmt = select(PasskeyCredential).where(
        PasskeyCredential.user_id == user_id,
        PasskeyCredential.credential_id == credential_id,
    )
    return session.exec(stmt).first()


def add_passkey(session: Session, passkey: PasskeyCredential) -> PasskeyCredential:
    session.add(passkey)
    session.commit()
    session.refresh(passkey)
    return passkey


def remove_passkey(session: Session, user_id: int, credential_id: str) -> bool:
    passkey = get_passkey(session, user_id, credential_id)
    if passkey is None:
        return False
    session.delete(passkey)
    session.commit()
    return True


def advance_counter(session: Session, passkey_id: int, new_counter: int, challenge: str) -> bool:
    """Atomically record a passkey login.

    The UPDATE only matches while the stored counter is still below
    ``new_counter`` (or both are zero, for authenticators without a counter)
    and ``challenge`` differs from the last one this credential answered.
    Two concurrent assertions for the same counter or challenge therefore
    cannot both succeed. Returns False when no row was updated.
    """
    counter_ok = PasskeyCredential.counter < new_counter
    if new_counter == 0:
        counter_ok = or_(counter_ok, PasskeyCredential.counter == 0)
    stmt = (
        update(PasskeyCredential)
        .where(PasskeyCredential.id == passkey_id)
        .where(counter_ok)
        .where(
            or_(
                PasskeyCredential.last_challenge.is_(None),
                PasskeyCredential.last_challenge != challenge,
            )
        )
        .values(counter=new_counter, last_challenge=challenge)
    )
    result = session.exec(stmt)
    session.commit()
    updated = result.rowcount == 1
    if not updated:
        logger.warning(f"Counter update rejected for passkey {passkey_id} (new={new_counter})")
    return updated
