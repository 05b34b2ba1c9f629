# shrnq/exceptions.py


class ShrnqError(Exception):
    """Base exception for errors that are safe to show to the client."""

    status_code: int = 500
    message: str = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# --- Key-value store / slug allocation ---


class StoreUnavailableError(ShrnqError):
    """Raised when the key-value store cannot be reached or returns an error."""

    status_code = 500
    message = "Something went wrong"


class AllocationExhaustedError(ShrnqError):
    """Raised when no free slug was found within the configured number of attempts."""

    status_code = 503
    message = "Could not allocate a short link. Please try again."


# --- Anti-abuse checks ---


class SecurityCheckError(ShrnqError):
    """Base exception for CSRF and honeypot rejections."""

    status_code = 400


class InvalidCSRFTokenError(SecurityCheckError):
    status_code = 403
    message = "Invalid CSRF token"


class SpamError(SecurityCheckError):
    status_code = 400
    message = "Form not submitted properly"


# --- WebAuthn ceremonies ---


class PasskeyError(ShrnqError):
    """Base exception for rejected registration or authentication ceremonies."""

    status_code = 400
    message = "Passkey verification failed."


class ChallengeMissingError(PasskeyError):
    message = "Expected a challenge. Reload the page and try again."


class InvalidCeremonyTypeError(PasskeyError):
    message = "Invalid verification type."


class CeremonyVerificationError(PasskeyError):
    """Raised when py_webauthn rejects the credential, the challenge or the signature."""

    message = "Passkey verification failed."


class MissingUsernameError(PasskeyError):
    message = "Username is required."


class DuplicateCredentialError(PasskeyError):
    status_code = 409
    message = "Authenticator has already been registered."


class UserAlreadyExistsError(PasskeyError):
    status_code = 409
    message = "User already exists."


class UsernameTakenError(PasskeyError):
    """Raised when the unique constraint on username rejects a concurrent registration."""

    status_code = 409
    message = "Username is already taken."


class AuthenticatorNotFoundError(PasskeyError):
    status_code = 404
    message = "Authenticator not found"


class UserNotFoundError(PasskeyError):
    status_code = 404
    message = "User not found"
