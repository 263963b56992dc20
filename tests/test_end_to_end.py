"""Full journey over HTTP: bootstrap, login, session check, TOTP step-up, passkey login."""

import pyotp

from authcore.config import settings
from authcore.services.session import verify_session
from authcore.services.tokens import decode_token

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, bearer
from softauthn import SoftAuthenticator


def test_bootstrap_to_step_up(client):
    boot = client.post(
        "/api/auth/bootstrap-admin",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD, "bootstrapToken": settings.bootstrap_token},
    )
    assert boot.status_code == 201

    login = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert login.status_code == 200
    session_token = login.json()["token"]
    assert login.json()["user"]["role"] == "admin"
    assert verify_session(session_token).role == "admin"
    headers = bearer(session_token)

    setup = client.post("/api/auth/totp/setup", headers=headers).json()
    totp = pyotp.TOTP(setup["secret"])
    confirm = client.post("/api/auth/totp/confirm", json={"code": totp.now()}, headers=headers)
    assert confirm.status_code == 200

    # Same password now only yields a challenge
    step = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert step.status_code == 200
    assert step.json()["requiresTwoFactor"] is True
    assert "token" not in step.json()
    challenge_token = step.json()["challengeToken"]

    # The challenge cannot be spent on the passkey path
    wrong_path = client.post(
        "/api/auth/passkey/login-verify",
        json={"challengeToken": challenge_token, "authenticationResponse": {}},
    )
    assert wrong_path.status_code == 401

    done = client.post("/api/auth/login/totp", json={"challengeToken": challenge_token, "code": totp.now()})
    assert done.status_code == 200
    assert verify_session(done.json()["token"]).role == "admin"

    # Passkey login bypasses the TOTP step: it is a complete factor on its own
    key = SoftAuthenticator()
    opts = client.get("/api/auth/passkey/register-options", headers=headers).json()
    reg = client.post(
        "/api/auth/passkey/register-verify",
        json={
            "challengeToken": opts["challengeToken"],
            "registrationResponse": key.register(decode_token(opts["challengeToken"]).claims["challenge"]),
        },
        headers=headers,
    )
    assert reg.status_code == 200

    login_opts = client.post("/api/auth/passkey/login-options", json={"email": ADMIN_EMAIL}).json()
    challenge = decode_token(login_opts["challengeToken"]).claims["challenge"]
    verified = client.post(
        "/api/auth/passkey/login-verify",
        json={"challengeToken": login_opts["challengeToken"], "authenticationResponse": key.authenticate(challenge)},
    )
    assert verified.status_code == 200
    assert verified.json()["user"]["totpEnabled"] is True
