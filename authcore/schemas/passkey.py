"""Pydantic schemas for passkey ceremonies and management."""

from datetime import datetime
from typing import Any

from pydantic import ConfigDict, EmailStr, Field, field_validator

from authcore.schemas.auth import CamelModel


class CeremonyOptionsResponse(CamelModel):
    options: dict[str, Any]
    challenge_token: str


class RegisterVerifyRequest(CamelModel):
    challenge_token: str = Field(min_length=1)
    registration_response: dict[str, Any]
    passkey_name: str | None = Field(default=None, max_length=64)


class LoginOptionsRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginVerifyRequest(CamelModel):
    challenge_token: str = Field(min_length=1)
    authentication_response: dict[str, Any]


class PasskeyRead(CamelModel):
    id: str
    name: str
    device_type: str
    backed_up: bool
    created_at: datetime
    # public key and counter are NEVER exposed

    model_config = ConfigDict(from_attributes=True)


class PasskeyListResponse(CamelModel):
    passkeys: list[PasskeyRead]


class PasskeyRegisteredResponse(CamelModel):
    message: str
    passkey: PasskeyRead
