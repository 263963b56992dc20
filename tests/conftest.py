"""Shared fixtures: in-memory vault, TestClient, seeded users, auth helpers.

Environment must be set before any authcore import because settings and the
engine are created at import time.
"""

import os

from cryptography.fernet import Fernet

os.environ["AUTHCORE_DATABASE_URL"] = "sqlite://"
os.environ["AUTHCORE_JWT_SECRET"] = "test-signing-secret-0123456789abcdef"
os.environ["AUTHCORE_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["AUTHCORE_BCRYPT_ROUNDS"] = "4"
os.environ["AUTHCORE_BOOTSTRAP_TOKEN"] = "test-bootstrap-token"
os.environ["AUTHCORE_WEBAUTHN_RP_ID"] = "localhost"
os.environ["AUTHCORE_WEBAUTHN_ORIGIN"] = "http://localhost:5173"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

import authcore.models  # noqa: F401
from authcore.database import engine
from authcore.main import app
from authcore.models.user import User
from authcore.services import vault
from authcore.services.auth import hash_password

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "ChangeMe123!"
OPERATOR_EMAIL = "ops@example.com"
OPERATOR_PASSWORD = "Operator123!"


@pytest.fixture(autouse=True)
def _fresh_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin(session) -> User:
    return vault.create_user(session, ADMIN_EMAIL, hash_password(ADMIN_PASSWORD), role="admin")


@pytest.fixture
def operator(session) -> User:
    return vault.create_user(session, OPERATOR_EMAIL, hash_password(OPERATOR_PASSWORD), role="operator")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
