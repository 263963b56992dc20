"""Passkey model: WebAuthn credentials registered by a user."""

from datetime import datetime, timezone

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field


class PasskeyCredential(SQLModel, table=True):
    __tablename__ = "passkey_credential"
    __table_args__ = (UniqueConstraint("user_id", "credential_id", name="uq_passkey_user_credential"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    credential_id: str = Field(index=True)  # base64url, as sent by the browser
    public_key: bytes  # serialized attested credential data (AAGUID + id + COSE key)
    counter: int = 0
    device_type: str = "singleDevice"  # "singleDevice" | "multiDevice"
    backed_up: bool = False
    transports: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    name: str = "Passkey"
    last_challenge: str | None = None  # base64url challenge of the last accepted login
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
