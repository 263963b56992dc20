"""Application configuration via environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'authcore.db'}"
    encryption_key: str = ""  # Fernet key; generate with: python -m authcore.cli generate-key
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Tokens
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440  # 24 hours
    challenge_expire_minutes: int = 5

    # Passwords / first-user seeding
    bcrypt_rounds: int = 12
    bootstrap_token: str = ""

    # TOTP
    totp_issuer: str = "Server Commands"

    # WebAuthn relying party
    webauthn_rp_id: str = "localhost"
    webauthn_rp_name: str = "Server Commands"
    webauthn_origin: str = "http://localhost:5173"

    model_config = {"env_prefix": "AUTHCORE_", "env_file": ".env"}


settings = Settings()
