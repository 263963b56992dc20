"""Database models."""

from authcore.models.user import User
from authcore.models.passkey import PasskeyCredential

__all__ = [
    "User",
    "PasskeyCredential",
]
