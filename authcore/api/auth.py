"""Authentication API — bootstrap, password login, TOTP step-up and enrollment."""

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlmodel import Session

from authcore.api.deps import get_current_user
from authcore.database import get_session
from authcore.models.user import User
from authcore.schemas.auth import (
    BootstrapRequest,
    CompleteTotpLoginRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    SessionResponse,
    StepUpResponse,
    TotpCode,
    TotpSetupResponse,
)
from authcore.services import totp
from authcore.services.auth import (
    Authenticated,
    StepUpRequired,
    authenticate_password,
    bootstrap_admin,
    user_summary,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _session_response(outcome: Authenticated) -> SessionResponse:
    return SessionResponse(token=outcome.token, user=outcome.user)


@router.post("/bootstrap-admin", response_model=SessionResponse, status_code=201)
def bootstrap(
    body: BootstrapRequest,
    x_bootstrap_token: str | None = Header(default=None),
    session: Session = Depends(get_session),
):
    try:
        outcome = bootstrap_admin(
            session,
            body.email,
            body.password,
            x_bootstrap_token or body.bootstrap_token,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _session_response(outcome)


@router.post("/login", response_model=SessionResponse | StepUpResponse)
def login(body: LoginRequest, session: Session = Depends(get_session)):
    outcome = authenticate_password(session, body.email, body.password)
    if isinstance(outcome, StepUpRequired):
        return StepUpResponse(challenge_token=outcome.challenge_token)
    return _session_response(outcome)


@router.post("/login/totp", response_model=SessionResponse)
def complete_totp_login(body: CompleteTotpLoginRequest, session: Session = Depends(get_session)):
    return _session_response(totp.complete_login(session, body.challenge_token, body.code))


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(user=user_summary(user))


@router.post("/totp/setup", response_model=TotpSetupResponse)
def setup_totp(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    enrollment = totp.enroll(session, user.id)
    return TotpSetupResponse(
        secret=enrollment.secret,
        otpauth_url=enrollment.otpauth_url,
        qr_code_data_url=enrollment.qr_code_data_url,
    )


@router.post("/totp/confirm", response_model=MessageResponse)
def confirm_totp(
    body: TotpCode,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    totp.confirm(session, user.id, body.code)
    return MessageResponse(message="2FA has been enabled successfully.")


@router.post("/totp/disable", response_model=MessageResponse)
def disable_totp(
    body: TotpCode,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    totp.disable(session, user.id, body.code)
    return MessageResponse(message="2FA has been disabled.")
