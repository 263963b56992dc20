"""Tests for TOTP codes, the enroll/confirm/disable lifecycle and step-up login."""

import time
from datetime import timedelta
from urllib.parse import unquote

import pyotp
import pytest
from cryptography.fernet import Fernet

from authcore.config import settings
from authcore.services import encryption, totp, vault
from authcore.services.auth import StepUpRequired, authenticate_password
from authcore.services.errors import (
    AlreadyEnabled,
    InvalidCode,
    NoPendingSecret,
    NotEnabled,
    Unauthorized,
)
from authcore.services.session import verify_session
from authcore.services.tokens import PURPOSE_PASSKEY_CHALLENGE, PURPOSE_TOTP_CHALLENGE, issue_token

from conftest import OPERATOR_EMAIL, OPERATOR_PASSWORD, bearer


def _enable(session, user) -> str:
    enrollment = totp.enroll(session, user.id)
    totp.confirm(session, user.id, pyotp.TOTP(enrollment.secret).now())
    return enrollment.secret


# ---------------------------------------------------------------------------
# 1. Code verification window
# ---------------------------------------------------------------------------

class TestVerifyTotp:
    secret = pyotp.random_base32()
    # Middle of a 30s step so +/- offsets land on exact neighbouring steps
    now = (int(time.time()) // 30) * 30 + 15

    def test_current_step(self):
        code = pyotp.TOTP(self.secret).at(self.now)
        assert totp.verify_totp(self.secret, code, for_time=self.now)

    def test_previous_step_accepted(self):
        code = pyotp.TOTP(self.secret).at(self.now - 30)
        assert totp.verify_totp(self.secret, code, for_time=self.now)

    def test_next_step_accepted(self):
        code = pyotp.TOTP(self.secret).at(self.now + 30)
        assert totp.verify_totp(self.secret, code, for_time=self.now)

    def test_two_steps_stale_rejected(self):
        code = pyotp.TOTP(self.secret).at(self.now - 60)
        assert not totp.verify_totp(self.secret, code, for_time=self.now)

    def test_non_numeric_rejected(self):
        assert not totp.verify_totp(self.secret, "abcdef", for_time=self.now)
        assert not totp.verify_totp(self.secret, "", for_time=self.now)


def test_totp_uri_names_issuer_and_account():
    uri = totp.get_totp_uri("JBSWY3DPEHPK3PXP", "ops@example.com")
    assert uri.startswith("otpauth://totp/")
    assert "Server Commands:ops@example.com" in unquote(uri)
    assert "issuer=Server Commands" in unquote(uri)


def test_qr_data_url_is_png():
    assert totp.qr_data_url("otpauth://totp/x?secret=JBSWY3DPEHPK3PXP").startswith("data:image/png;base64,")


def test_sealed_secret_needs_configured_key(monkeypatch):
    monkeypatch.setattr(encryption, "_cipher", None)
    monkeypatch.setattr(settings, "encryption_key", "")
    with pytest.raises(RuntimeError, match="AUTHCORE_ENCRYPTION_KEY"):
        encryption.encrypt_secret("JBSWY3DPEHPK3PXP")


def test_sealed_secret_under_other_key(monkeypatch):
    sealed = encryption.encrypt_secret("JBSWY3DPEHPK3PXP")
    assert encryption.decrypt_secret(sealed) == "JBSWY3DPEHPK3PXP"

    monkeypatch.setattr(encryption, "_cipher", Fernet(Fernet.generate_key()))
    with pytest.raises(RuntimeError, match="does not match"):
        encryption.decrypt_secret(sealed)


# ---------------------------------------------------------------------------
# 2. Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_enroll_stores_encrypted_pending_secret(self, session, operator):
        enrollment = totp.enroll(session, operator.id)
        session.refresh(operator)
        assert operator.totp_enabled is False
        assert operator.totp_secret_encrypted
        assert enrollment.secret not in operator.totp_secret_encrypted
        assert vault.get_totp_secret(operator) == enrollment.secret
        assert enrollment.otpauth_url.startswith("otpauth://totp/")

    def test_enroll_again_overwrites_pending_secret(self, session, operator):
        first = totp.enroll(session, operator.id).secret
        second = totp.enroll(session, operator.id).secret
        assert first != second
        session.refresh(operator)
        assert vault.get_totp_secret(operator) == second

    def test_confirm_without_secret(self, session, operator):
        with pytest.raises(NoPendingSecret):
            totp.confirm(session, operator.id, "123456")

    def test_confirm_wrong_code_leaves_state(self, session, operator):
        enrollment = totp.enroll(session, operator.id)
        wrong = pyotp.TOTP(enrollment.secret).at(int(time.time()) - 300)
        with pytest.raises(InvalidCode):
            totp.confirm(session, operator.id, wrong)
        session.refresh(operator)
        assert operator.totp_enabled is False
        assert vault.get_totp_secret(operator) == enrollment.secret

    def test_confirm_enables(self, session, operator):
        _enable(session, operator)
        session.refresh(operator)
        assert operator.totp_enabled is True

    def test_already_enabled(self, session, operator):
        secret = _enable(session, operator)
        with pytest.raises(AlreadyEnabled):
            totp.enroll(session, operator.id)
        with pytest.raises(AlreadyEnabled):
            totp.confirm(session, operator.id, pyotp.TOTP(secret).now())

    def test_disable_requires_enabled(self, session, operator):
        totp.enroll(session, operator.id)
        with pytest.raises(NotEnabled):
            totp.disable(session, operator.id, "123456")

    def test_disable_wrong_code_leaves_state(self, session, operator):
        secret = _enable(session, operator)
        wrong = pyotp.TOTP(secret).at(int(time.time()) - 300)
        with pytest.raises(InvalidCode):
            totp.disable(session, operator.id, wrong)
        session.refresh(operator)
        assert operator.totp_enabled is True

    def test_disable_clears_secret(self, session, operator):
        secret = _enable(session, operator)
        totp.disable(session, operator.id, pyotp.TOTP(secret).now())
        session.refresh(operator)
        assert operator.totp_enabled is False
        assert operator.totp_secret_encrypted is None


# ---------------------------------------------------------------------------
# 3. Step-up login
# ---------------------------------------------------------------------------

class TestCompleteLogin:
    def test_valid_code_issues_session(self, session, operator):
        secret = _enable(session, operator)
        outcome = authenticate_password(session, OPERATOR_EMAIL, OPERATOR_PASSWORD)
        assert isinstance(outcome, StepUpRequired)

        result = totp.complete_login(session, outcome.challenge_token, pyotp.TOTP(secret).now())
        principal = verify_session(result.token)
        assert principal.user_id == str(operator.id)
        assert principal.role == "operator"
        assert result.user["totpEnabled"] is True

    def test_wrong_code(self, session, operator):
        secret = _enable(session, operator)
        challenge = issue_token(str(operator.id), PURPOSE_TOTP_CHALLENGE)
        with pytest.raises(InvalidCode):
            totp.complete_login(session, challenge, pyotp.TOTP(secret).at(int(time.time()) - 300))

    def test_passkey_challenge_rejected(self, session, operator):
        secret = _enable(session, operator)
        challenge = issue_token(str(operator.id), PURPOSE_PASSKEY_CHALLENGE, {"challenge": "x"})
        with pytest.raises(Unauthorized):
            totp.complete_login(session, challenge, pyotp.TOTP(secret).now())

    def test_expired_challenge_rejected(self, session, operator):
        secret = _enable(session, operator)
        challenge = issue_token(str(operator.id), PURPOSE_TOTP_CHALLENGE, ttl=timedelta(seconds=-1))
        with pytest.raises(Unauthorized):
            totp.complete_login(session, challenge, pyotp.TOTP(secret).now())

    def test_totp_disabled_after_challenge(self, session, operator):
        secret = _enable(session, operator)
        challenge = issue_token(str(operator.id), PURPOSE_TOTP_CHALLENGE)
        code = pyotp.TOTP(secret).now()
        totp.disable(session, operator.id, code)
        with pytest.raises(Unauthorized):
            totp.complete_login(session, challenge, code)


# ---------------------------------------------------------------------------
# 4. HTTP
# ---------------------------------------------------------------------------

def test_setup_confirm_disable_endpoints(client, operator):
    login = client.post("/api/auth/login", json={"email": OPERATOR_EMAIL, "password": OPERATOR_PASSWORD})
    headers = bearer(login.json()["token"])

    assert client.post("/api/auth/totp/setup").status_code == 401

    setup = client.post("/api/auth/totp/setup", headers=headers)
    assert setup.status_code == 200
    body = setup.json()
    assert body["qrCodeDataUrl"].startswith("data:image/png;base64,")
    assert body["otpauthUrl"].startswith("otpauth://totp/")
    secret = body["secret"]

    bad = client.post("/api/auth/totp/confirm", json={"code": "12ab56"}, headers=headers)
    assert bad.status_code == 422

    ok = client.post("/api/auth/totp/confirm", json={"code": pyotp.TOTP(secret).now()}, headers=headers)
    assert ok.status_code == 200

    me = client.get("/api/auth/me", headers=headers)
    assert me.json()["user"]["totpEnabled"] is True

    again = client.post("/api/auth/totp/setup", headers=headers)
    assert again.status_code == 409

    off = client.post("/api/auth/totp/disable", json={"code": pyotp.TOTP(secret).now()}, headers=headers)
    assert off.status_code == 200
    assert client.get("/api/auth/me", headers=headers).json()["user"]["totpEnabled"] is False


def test_complete_totp_login_endpoint(client, session, operator):
    secret = _enable(session, operator)
    step = client.post("/api/auth/login", json={"email": OPERATOR_EMAIL, "password": OPERATOR_PASSWORD})
    assert step.status_code == 200
    body = step.json()
    assert body["requiresTwoFactor"] is True
    assert "token" not in body

    done = client.post(
        "/api/auth/login/totp",
        json={"challengeToken": body["challengeToken"], "code": pyotp.TOTP(secret).now()},
    )
    assert done.status_code == 200
    assert verify_session(done.json()["token"]).role == "operator"

    # A challenge token is not a session
    me = client.get("/api/auth/me", headers=bearer(body["challengeToken"]))
    assert me.status_code == 401
