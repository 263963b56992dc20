"""User model for authentication."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field

ROLES = ("admin", "operator")


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)  # always stored lower-cased
    hashed_password: str
    role: str = Field(default="operator")
    totp_secret_encrypted: str | None = None  # Fernet-encrypted base32 secret
    totp_enabled: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
