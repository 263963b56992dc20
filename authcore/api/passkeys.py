"""Passkey API — WebAuthn registration, passkey login and passkey management."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlmodel import Session

from authcore.api.deps import get_current_user
from authcore.database import get_session
from authcore.models.user import User
from authcore.schemas.auth import MessageResponse, SessionResponse
from authcore.schemas.passkey import (
    CeremonyOptionsResponse,
    LoginOptionsRequest,
    LoginVerifyRequest,
    PasskeyListResponse,
    PasskeyRegisteredResponse,
    RegisterVerifyRequest,
)
from authcore.services import webauthn

router = APIRouter(prefix="/api/auth/passkey", tags=["passkeys"])


@router.get("/register-options", response_model=CeremonyOptionsResponse)
def register_options(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    ceremony = webauthn.begin_registration(session, user.id)
    return CeremonyOptionsResponse(options=ceremony.options, challenge_token=ceremony.challenge_token)


@router.post("/register-verify", response_model=PasskeyRegisteredResponse)
def register_verify(
    body: RegisterVerifyRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    result = webauthn.finish_registration(
        session,
        user.id,
        body.challenge_token,
        body.registration_response,
        body.passkey_name,
    )
    return PasskeyRegisteredResponse(
        message="Passkey registered successfully.",
        passkey=asdict(result.passkey),
    )


@router.post("/login-options", response_model=CeremonyOptionsResponse)
def login_options(body: LoginOptionsRequest, session: Session = Depends(get_session)):
    ceremony = webauthn.begin_authentication(session, body.email)
    return CeremonyOptionsResponse(options=ceremony.options, challenge_token=ceremony.challenge_token)


@router.post("/login-verify", response_model=SessionResponse)
def login_verify(body: LoginVerifyRequest, session: Session = Depends(get_session)):
    outcome = webauthn.finish_authentication(session, body.challenge_token, body.authentication_response)
    return SessionResponse(token=outcome.token, user=outcome.user)


@router.get("/list", response_model=PasskeyListResponse)
def list_passkeys(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    summaries = webauthn.list_passkeys(session, user.id)
    return PasskeyListResponse(passkeys=[asdict(s) for s in summaries])


@router.delete("/{credential_id}", response_model=MessageResponse)
def delete_passkey(
    credential_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    webauthn.remove_passkey(session, user.id, credential_id)
    return MessageResponse(message="Passkey removed.")
