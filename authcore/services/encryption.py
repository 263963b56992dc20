"""At-rest sealing of TOTP secrets.

A secret is Fernet-encrypted under ``AUTHCORE_ENCRYPTION_KEY`` before it is
written to ``user.totp_secret_encrypted``. The key is loaded on first use, so
an instance whose users never enroll TOTP can run without one.
"""

from cryptography.fernet import Fernet, InvalidToken

from authcore.config import settings

_cipher: Fernet | None = None


def _get_cipher() -> Fernet:
    global _cipher
    if _cipher is None:
        if not settings.encryption_key:
            raise RuntimeError(
                "AUTHCORE_ENCRYPTION_KEY is required to store TOTP secrets; "
                "create one with `python -m authcore.cli generate-key`"
            )
        _cipher = Fernet(settings.encryption_key.encode())
    return _cipher


def generate_key() -> str:
    return Fernet.generate_key().decode()


def encrypt_secret(secret: str) -> str:
    return _get_cipher().encrypt(secret.encode()).decode()


def decrypt_secret(sealed: str) -> str:
    """Open a sealed TOTP secret.

    A ciphertext written under a different key is a deployment error, not a
    bad login, so it surfaces as ``RuntimeError`` rather than an auth failure.
    """
    try:
        return _get_cipher().decrypt(sealed.encode()).decode()
    except InvalidToken as e:
        raise RuntimeError("Stored TOTP secret does not match AUTHCORE_ENCRYPTION_KEY") from e
