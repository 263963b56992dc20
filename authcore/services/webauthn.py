"""WebAuthn (passkey) registration and authentication ceremonies.

Each ceremony has two calls: ``begin_*`` builds the browser options and a
signed ``passkey-challenge`` token carrying the fido2 server state;
``finish_*`` verifies the browser's response against that state. Nothing is
stored between the two calls, so the token is the only pending-ceremony
record and its 5 minute lifetime bounds the ceremony.

A successful login writes the new signature counter and the challenge it
answered in one conditional update. The counter must strictly increase,
except for authenticators that always report zero, and a challenge is
accepted once per credential.
"""

import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from fido2.server import Fido2Server
from fido2.utils import websafe_decode, websafe_encode
from fido2.webauthn import (
    AttestationConveyancePreference,
    AttestedCredentialData,
    AuthenticationResponse,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    PublicKeyCredentialRpEntity,
    PublicKeyCredentialType,
    PublicKeyCredentialUserEntity,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)
from sqlmodel import Session

from authcore.config import settings
from authcore.models.passkey import PasskeyCredential
from authcore.models.user import User
from authcore.services import vault
from authcore.services.auth import Authenticated, authenticated
from authcore.services.errors import (
    AssertionFailed,
    CeremonyFailed,
    CredentialNotRecognized,
    NoCredentials,
    NotFound,
    ReplayDetected,
    Unauthorized,
)
from authcore.services.tokens import (
    PURPOSE_PASSKEY_CHALLENGE,
    TokenClaims,
    challenge_ttl,
    expect_purpose,
    issue_token,
)

logger = logging.getLogger(__name__)

CEREMONY_REGISTRATION = "registration"
CEREMONY_AUTHENTICATION = "authentication"
DEFAULT_PASSKEY_NAME = "Passkey"
MAX_PASSKEY_NAME = 64


@dataclass
class CeremonyOptions:
    options: dict
    challenge_token: str


@dataclass
class PasskeySummary:
    id: str
    name: str
    device_type: str
    backed_up: bool
    created_at: datetime

    @classmethod
    def from_model(cls, passkey: PasskeyCredential) -> "PasskeySummary":
        return cls(
            id=passkey.credential_id,
            name=passkey.name,
            device_type=passkey.device_type,
            backed_up=passkey.backed_up,
            created_at=passkey.created_at,
        )


@dataclass
class Registered:
    passkey: PasskeySummary


def _verify_origin(origin: str) -> bool:
    return origin == settings.webauthn_origin


def get_server() -> Fido2Server:
    rp = PublicKeyCredentialRpEntity(name=settings.webauthn_rp_name, id=settings.webauthn_rp_id)
    return Fido2Server(
        rp,
        attestation=AttestationConveyancePreference.NONE,
        verify_origin=_verify_origin,
    )


def _descriptor(passkey: PasskeyCredential) -> PublicKeyCredentialDescriptor:
    transports = []
    for name in passkey.transports or []:
        try:
            transports.append(AuthenticatorTransport(name))
        except ValueError:
            continue  # unknown to this fido2 version
    return PublicKeyCredentialDescriptor(
        type=PublicKeyCredentialType.PUBLIC_KEY,
        id=websafe_decode(passkey.credential_id),
        transports=transports or None,
    )


def _issue_challenge(user: User, ceremony: str, challenge: bytes, state: dict) -> str:
    claims = {"ceremony": ceremony, "challenge": websafe_encode(challenge), "state": state}
    return issue_token(str(user.id), PURPOSE_PASSKEY_CHALLENGE, claims, ttl=challenge_ttl())


def _expect_ceremony(challenge_token: str, ceremony: str) -> TokenClaims:
    decoded = expect_purpose(challenge_token, PURPOSE_PASSKEY_CHALLENGE)
    claims = decoded.claims
    if (
        claims.get("ceremony") != ceremony
        or not isinstance(claims.get("state"), dict)
        or not isinstance(claims.get("challenge"), str)
    ):
        raise Unauthorized("Challenge token is invalid.")
    return decoded


def _load_user(session: Session, user_id: int | str) -> User:
    user = vault.get_user(session, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


# ---------------------------------------------------------------------------
# Registration (caller already holds a session)
# ---------------------------------------------------------------------------

def begin_registration(session: Session, user_id: int | str) -> CeremonyOptions:
    user = _load_user(session, user_id)
    existing = vault.list_passkeys(session, user.id)

    challenge = secrets.token_bytes(32)
    options, state = get_server().register_begin(
        PublicKeyCredentialUserEntity(
            name=user.email,
            id=str(user.id).encode("utf-8"),
            display_name=user.email,
        ),
        credentials=[_descriptor(pk) for pk in existing],
        resident_key_requirement=ResidentKeyRequirement.PREFERRED,
        user_verification=UserVerificationRequirement.PREFERRED,
        challenge=challenge,
    )
    token = _issue_challenge(user, CEREMONY_REGISTRATION, challenge, state)
    return CeremonyOptions(options=dict(options), challenge_token=token)


def finish_registration(
    session: Session,
    user_id: int | str,
    challenge_token: str,
    response: Mapping,
    name: str | None = None,
) -> Registered:
    """Verify an attestation and store the new credential.

    The challenge token must have been issued to the same user that is now
    calling, otherwise a token from one account could add keys to another.
    """
    decoded = _expect_ceremony(challenge_token, CEREMONY_REGISTRATION)
    if decoded.subject != str(user_id):
        raise Unauthorized("Challenge token is invalid.")
    user = _load_user(session, user_id)

    if not isinstance(response, Mapping):
        raise CeremonyFailed("Malformed registration response.")

    try:
        auth_data = get_server().register_complete(decoded.claims["state"], response)
    except Exception as e:
        logger.warning(f"Passkey registration failed for user {user.id}: {e}")
        raise CeremonyFailed(f"Verification failed: {e}") from e

    cred = auth_data.credential_data
    if cred is None:
        raise CeremonyFailed("Registration response carried no credential.")

    credential_id = websafe_encode(cred.credential_id)
    if vault.get_passkey(session, user.id, credential_id) is not None:
        raise CeremonyFailed("Passkey already registered.")

    transports = (response.get("response") or {}).get("transports") or []
    label = (name or "").strip()[:MAX_PASSKEY_NAME] or DEFAULT_PASSKEY_NAME
    passkey = vault.add_passkey(
        session,
        PasskeyCredential(
            user_id=user.id,
            credential_id=credential_id,
            public_key=bytes(cred),
            counter=auth_data.counter,
            device_type="multiDevice" if auth_data.is_backup_eligible() else "singleDevice",
            backed_up=auth_data.is_backed_up(),
            transports=[str(t) for t in transports],
            name=label,
        ),
    )
    logger.info(f"Passkey {passkey.id} registered for user {user.id}")
    return Registered(passkey=PasskeySummary.from_model(passkey))


# ---------------------------------------------------------------------------
# Authentication (this is a login path; no session yet)
# ---------------------------------------------------------------------------

def begin_authentication(session: Session, email: str) -> CeremonyOptions:
    user = vault.get_user_by_email(session, email)
    passkeys = vault.list_passkeys(session, user.id) if user is not None else []
    if not passkeys:
        raise NoCredentials()

    challenge = secrets.token_bytes(32)
    options, state = get_server().authenticate_begin(
        [_descriptor(pk) for pk in passkeys],
        user_verification=UserVerificationRequirement.PREFERRED,
        challenge=challenge,
    )
    token = _issue_challenge(user, CEREMONY_AUTHENTICATION, challenge, state)
    return CeremonyOptions(options=dict(options), challenge_token=token)


def counter_advances(stored: int, new: int) -> bool:
    """Authenticators without a counter report 0 forever; anything else must grow."""
    if stored == 0 and new == 0:
        return True
    return new > stored


def finish_authentication(session: Session, challenge_token: str, response: Mapping) -> Authenticated:
    decoded = _expect_ceremony(challenge_token, CEREMONY_AUTHENTICATION)
    user = vault.get_user(session, decoded.subject)
    if user is None:
        raise Unauthorized("User not found.")

    try:
        parsed = AuthenticationResponse.from_dict(response)
    except Exception as e:
        raise AssertionFailed("Malformed authentication response.") from e

    passkey = vault.get_passkey(session, user.id, websafe_encode(parsed.raw_id))
    if passkey is None:
        raise CredentialNotRecognized()

    try:
        get_server().authenticate_complete(
            decoded.claims["state"],
            [AttestedCredentialData(passkey.public_key)],
            parsed,
        )
    except Exception as e:
        logger.warning(f"Passkey assertion failed for user {user.id}: {e}")
        raise AssertionFailed(f"Verification failed: {e}") from e

    new_counter = parsed.response.authenticator_data.counter
    if not counter_advances(passkey.counter, new_counter):
        logger.warning(
            f"Replay detected for passkey {passkey.id} of user {user.id}: "
            f"counter {new_counter} <= stored {passkey.counter}"
        )
        raise ReplayDetected()
    # Records the challenge as well; a second use of it matches no row
    if not vault.advance_counter(session, passkey.id, new_counter, decoded.claims["challenge"]):
        logger.warning(f"Replay detected for passkey {passkey.id} of user {user.id}: counter or challenge already used")
        raise ReplayDetected()

    logger.info(f"User {user.id} logged in with passkey {passkey.id}")
    return authenticated(user)


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------

def list_passkeys(session: Session, user_id: int | str) -> list[PasskeySummary]:
    user = _load_user(session, user_id)
    return [PasskeySummary.from_model(pk) for pk in vault.list_passkeys(session, user.id)]


def remove_passkey(session: Session, user_id: int | str, credential_id: str) -> None:
    """Delete one of the caller's own passkeys; anyone else's id is simply not found."""
    user = _load_user(session, user_id)
    if not vault.remove_passkey(session, user.id, credential_id):
        raise NotFound("Passkey not found.")
    logger.info(f"Passkey removed for user {user.id}")
