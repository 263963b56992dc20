"""Authentication failures raised by the service layer.

Each error carries the HTTP status and the message shown to the client; the
API layer renders them through a single exception handler in ``main.py``.
"""


class AuthError(Exception):
    status_code: int = 400
    detail: str = "Authentication request failed."

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class InvalidCredentials(AuthError):
    status_code = 401
    detail = "Invalid email or password."


class Unauthorized(AuthError):
    status_code = 401
    detail = "Invalid or expired token."


class TokenInvalid(Unauthorized):
    pass


class TokenExpired(Unauthorized):
    pass


class Forbidden(AuthError):
    status_code = 403
    detail = "Insufficient role."


class InvalidCode(AuthError):
    status_code = 401
    detail = "Invalid authenticator code."


class AlreadyEnabled(AuthError):
    status_code = 409
    detail = "2FA is already enabled. Disable it first."


class NoPendingSecret(AuthError):
    status_code = 400
    detail = "Run 2FA setup first to get a secret."


class NotEnabled(AuthError):
    status_code = 400
    detail = "2FA is not enabled on this account."


class CeremonyFailed(AuthError):
    status_code = 400
    detail = "Passkey verification failed."


class AssertionFailed(Unauthorized):
    """A passkey assertion that did not verify during login."""

    detail = "Passkey verification failed."


class ReplayDetected(AuthError):
    status_code = 401
    detail = "Passkey signature counter did not advance."


class CredentialNotRecognized(AuthError):
    status_code = 401
    detail = "Passkey not recognized."


class NoCredentials(AuthError):
    status_code = 404
    detail = "No passkeys registered for this account."


class NotFound(AuthError):
    status_code = 404
    detail = "Not found."


class BootstrapUnavailable(AuthError):
    status_code = 503
    detail = "Bootstrap token is not configured."


class BootstrapForbidden(AuthError):
    status_code = 401
    detail = "Bootstrap token is invalid."


class BootstrapClosed(AuthError):
    status_code = 409
    detail = "Bootstrap can only be used before the first user is created."
