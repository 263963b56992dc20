"""Pydantic schemas for the login, bootstrap and TOTP endpoints."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # Browser clients send and receive camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _normalize_email(value: str) -> str:
    return value.strip().lower()


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return _normalize_email(value)


class BootstrapRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=255)
    bootstrap_token: str | None = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return _normalize_email(value)


class TotpCode(CamelModel):
    code: str = Field(min_length=6, max_length=8)

    @field_validator("code")
    @classmethod
    def _strip_code(cls, value: str) -> str:
        code = value.strip()
        if not code.isdigit():
            raise ValueError("must contain digits only")
        return code


class CompleteTotpLoginRequest(TotpCode):
    challenge_token: str = Field(min_length=1)


class UserRead(CamelModel):
    id: str
    email: str
    role: str
    totp_enabled: bool


class SessionResponse(CamelModel):
    token: str
    user: UserRead


class StepUpResponse(CamelModel):
    requires_two_factor: bool = True
    challenge_token: str


class MeResponse(CamelModel):
    user: UserRead


class TotpSetupResponse(CamelModel):
    secret: str
    otpauth_url: str
    qr_code_data_url: str


class MessageResponse(CamelModel):
    message: str
