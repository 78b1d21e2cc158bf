"""Exception hierarchy for challenge-auth.

Domain errors describe protocol and policy outcomes; infrastructure errors
describe store, delivery and identity-backend failures. Infrastructure errors
are propagated to the calling identity pipeline, which owns retry policy.
"""

from __future__ import annotations

from .model import FailureReason, VerificationOutcome


class ChallengeAuthError(Exception):
    """Root exception for the challenge-auth package."""


# ═══════════════════════════════════════════════════════════════
# DOMAIN ERRORS
# ═══════════════════════════════════════════════════════════════


class DomainError(ChallengeAuthError):
    """Base class for protocol and policy errors."""


class InvalidChallengeStateError(DomainError):
    """Raised when the transcript and session record cannot be reconciled.

    Examples:
        - Flow selection succeeded but the session record is gone.
        - The stored flow is not a recognized flow identifier.
    """


class ResendLimitExceededError(DomainError):
    """Raised when a resend is requested past the lockout threshold.

    This is a hard error, distinct from an ordinary wrong answer.

    Attributes:
        user_id: User whose resend was denied.
        resend_count: Counter value observed when the request was denied.
        reason: Stable failure reason surfaced to the caller.
        outcome: Tagged verification outcome (always RESEND_DENIED).
    """

    def __init__(self, user_id: str, resend_count: int | None = None) -> None:
        self.user_id = user_id
        self.resend_count = resend_count
        self.reason: FailureReason = FailureReason.MAX_OTP_RESEND_ATTEMPTS_EXCEEDED
        self.outcome: VerificationOutcome = VerificationOutcome.RESEND_DENIED
        super().__init__(self.reason.value)


class PasswordResetError(DomainError):
    """Base class for password-reset failures with an HTTP status."""

    status_code: int = 400
    default_message: str = "Password reset failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingFieldsError(PasswordResetError):
    """Raised when required request fields are absent."""

    default_message = "Required fields are missing"


class WeakPasswordError(PasswordResetError):
    """Raised when the new password fails the local length policy."""

    default_message = "Password must be at least 8 characters long"


class InvalidResetCodeError(PasswordResetError):
    """Raised when the reset code is absent, wrong or expired.

    The three conditions are deliberately indistinguishable.
    """

    default_message = "Invalid or expired OTP"


class PasswordPolicyError(PasswordResetError):
    """Raised when the identity backend rejects the new password."""

    default_message = "Password does not meet requirements"


class UserNotFoundError(PasswordResetError):
    """Raised when the identity backend does not know the account."""

    status_code = 404
    default_message = "User not found"


# ═══════════════════════════════════════════════════════════════
# INPUT / CONFIGURATION ERRORS
# ═══════════════════════════════════════════════════════════════


class ValidationError(ChallengeAuthError):
    """Raised when a trigger event or request is malformed.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class ConfigurationError(ChallengeAuthError):
    """Raised when settings are missing or invalid."""


# ═══════════════════════════════════════════════════════════════
# INFRASTRUCTURE ERRORS
# ═══════════════════════════════════════════════════════════════


class InfrastructureError(ChallengeAuthError):
    """Base class for backend failures."""


class StateStoreError(InfrastructureError):
    """Raised when the state store fails."""


class ConditionFailedError(StateStoreError):
    """Raised when a conditional update's guard does not hold.

    Nothing is applied when this is raised.
    """

    def __init__(self, user_id: str, detail: str = "") -> None:
        self.user_id = user_id
        msg = f"Conditional update rejected for {user_id}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class OtpDeliveryError(InfrastructureError):
    """Raised when no channel could deliver a passcode.

    Attributes:
        user_id: Recipient account.
        errors: Per-channel failure descriptions.
    """

    def __init__(self, user_id: str, errors: list[str] | None = None) -> None:
        self.user_id = user_id
        self.errors = errors or []
        detail = "; ".join(self.errors) if self.errors else "no channel available"
        super().__init__(f"Failed to deliver OTP to {user_id}: {detail}")


class IdentityBackendError(InfrastructureError):
    """Raised when the credential or identity backend fails unexpectedly."""


__all__: list[str] = [
    "ChallengeAuthError",
    "DomainError",
    "InvalidChallengeStateError",
    "ResendLimitExceededError",
    "PasswordResetError",
    "MissingFieldsError",
    "WeakPasswordError",
    "InvalidResetCodeError",
    "PasswordPolicyError",
    "UserNotFoundError",
    "ValidationError",
    "ConfigurationError",
    "InfrastructureError",
    "StateStoreError",
    "ConditionFailedError",
    "OtpDeliveryError",
    "IdentityBackendError",
]
