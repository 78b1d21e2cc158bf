"""Multi-step challenge-response authentication with OTP delivery and password reset."""

from __future__ import annotations

from .config import ChallengeAuthSettings, KeycloakSettings, OtpConfig, PasswordResetConfig
from .delivery import ChannelKind, DeliveryRecord, DeliveryStatus, OtpMessage
from .exceptions import (
    ChallengeAuthError,
    ConditionFailedError,
    ConfigurationError,
    DomainError,
    IdentityBackendError,
    InfrastructureError,
    InvalidChallengeStateError,
    InvalidResetCodeError,
    MissingFieldsError,
    OtpDeliveryError,
    PasswordPolicyError,
    PasswordResetError,
    ResendLimitExceededError,
    StateStoreError,
    UserNotFoundError,
    ValidationError,
    WeakPasswordError,
)
from .issuer import ChallengeIssuer
from .model import (
    AccountContacts,
    AuthFlow,
    ChallengeDescriptor,
    ChallengeRound,
    ChallengeStep,
    Decision,
    DecisionAction,
    FailureReason,
    LoginContext,
    LoginSession,
    LoginStage,
    PasswordResetRecord,
    SessionUpdate,
    VerificationOutcome,
    VerificationResult,
)
from .orchestrator import AuthChallengeOrchestrator
from .otp import DispatchReport, OtpDispatcher, OtpGenerator
from .ports import (
    ICredentialVerifier,
    IIdentityDirectory,
    ILoginStateStore,
    IOtpChannel,
    IPasswordResetStore,
)
from .reset import PasswordResetEndpoints, PasswordResetService, ResetResponse
from .transcript import TranscriptState, derive_state
from .verifier import AnswerVerifier

__all__: list[str] = [
    # Phases
    "AuthChallengeOrchestrator",
    "ChallengeIssuer",
    "AnswerVerifier",
    "derive_state",
    "TranscriptState",
    # OTP
    "OtpGenerator",
    "OtpDispatcher",
    "DispatchReport",
    # Password reset
    "PasswordResetService",
    "PasswordResetEndpoints",
    "ResetResponse",
    # Model
    "AuthFlow",
    "ChallengeStep",
    "LoginStage",
    "DecisionAction",
    "FailureReason",
    "VerificationOutcome",
    "ChallengeRound",
    "AccountContacts",
    "LoginContext",
    "LoginSession",
    "SessionUpdate",
    "ChallengeDescriptor",
    "Decision",
    "VerificationResult",
    "PasswordResetRecord",
    # Delivery
    "ChannelKind",
    "DeliveryStatus",
    "DeliveryRecord",
    "OtpMessage",
    # Ports
    "ILoginStateStore",
    "IPasswordResetStore",
    "ICredentialVerifier",
    "IOtpChannel",
    "IIdentityDirectory",
    # Configuration
    "OtpConfig",
    "PasswordResetConfig",
    "KeycloakSettings",
    "ChallengeAuthSettings",
    # Exceptions
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
