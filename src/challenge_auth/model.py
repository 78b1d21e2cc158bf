"""Value types shared by the three challenge phases and the reset flow.

Persisted field names (``userName``, ``authFlow``, ``resendCount`` ...) are a
stable contract: other tooling may read the same tables.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

CUSTOM_CHALLENGE = "CUSTOM_CHALLENGE"

# ═══════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════


class AuthFlow(Enum):
    """Login flows a user can select in the first round."""

    PASSWORD_OTP = "PASSWORD_OTP"
    OTP_ONLY = "OTP_ONLY"

    @classmethod
    def parse(cls, value: str | None) -> AuthFlow | None:
        """Return the flow named by ``value`` or None if unrecognized."""
        for flow in cls:
            if flow.value == value:
                return flow
        return None


class ChallengeStep(Enum):
    """Logical step tag carried as challenge metadata."""

    SELECT_AUTH_FLOW = "SELECT_AUTH_FLOW"
    PASSWORD_CHALLENGE = "PASSWORD_CHALLENGE"
    OTP_CHALLENGE = "OTP_CHALLENGE"

    @classmethod
    def parse(cls, value: str | None) -> ChallengeStep | None:
        for step in cls:
            if step.value == value:
                return step
        return None


class LoginStage(Enum):
    """Where a login stands, derived once from its transcript.

    ``FLOW_SELECTED`` resolves to ``AWAITING_PASSWORD`` or ``AWAITING_OTP``
    once the session record's flow is known.
    """

    AWAITING_FLOW = "AWAITING_FLOW"
    FLOW_SELECTED = "FLOW_SELECTED"
    AWAITING_PASSWORD = "AWAITING_PASSWORD"
    AWAITING_OTP = "AWAITING_OTP"
    OTP_RETRY = "OTP_RETRY"
    TERMINAL_SUCCESS = "TERMINAL_SUCCESS"
    TERMINAL_FAILURE = "TERMINAL_FAILURE"


class DecisionAction(Enum):
    CONTINUE = "CONTINUE"
    ISSUE_TOKENS = "ISSUE_TOKENS"
    FAIL = "FAIL"


class FailureReason(Enum):
    """Failure reasons surfaced to the caller (stable strings)."""

    INVALID_PASSWORD = "INVALID_PASSWORD"
    MAX_OTP_RESEND_ATTEMPTS_EXCEEDED = "MAX_OTP_RESEND_ATTEMPTS_EXCEEDED"
    INVALID_CHALLENGE_STATE = "INVALID_CHALLENGE_STATE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INVALID_AUTH_FLOW = "INVALID_AUTH_FLOW"


class VerificationOutcome(Enum):
    """Tagged result of the verify phase.

    A negative OTP round can mean a wrong guess or an accepted resend;
    the tag keeps them apart. ``RESEND_DENIED`` travels on
    :class:`~challenge_auth.exceptions.ResendLimitExceededError`.
    """

    FLOW_SELECTED = "FLOW_SELECTED"
    FLOW_REJECTED = "FLOW_REJECTED"
    PASSWORD_ACCEPTED = "PASSWORD_ACCEPTED"
    PASSWORD_REJECTED = "PASSWORD_REJECTED"
    OTP_ACCEPTED = "OTP_ACCEPTED"
    WRONG_ANSWER = "WRONG_ANSWER"
    RESEND_ACCEPTED = "RESEND_ACCEPTED"
    RESEND_DENIED = "RESEND_DENIED"
    SESSION_MISSING = "SESSION_MISSING"
    UNRECOGNIZED_CHALLENGE = "UNRECOGNIZED_CHALLENGE"


# ═══════════════════════════════════════════════════════════════
# TRANSCRIPT
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ChallengeRound:
    """One prior round of the login, as reported by the identity pipeline.

    Attributes:
        challenge_name: Pipeline challenge kind (``CUSTOM_CHALLENGE`` here).
        challenge_result: Whether the answer was accepted.
        challenge_metadata: Step tag written by the issuer for that round.
    """

    challenge_name: str
    challenge_result: bool
    challenge_metadata: str | None = None

    @property
    def step(self) -> ChallengeStep | None:
        """Recognized step tag, or None for foreign or untagged rounds."""
        if self.challenge_name != CUSTOM_CHALLENGE:
            return None
        return ChallengeStep.parse(self.challenge_metadata)


Transcript = tuple[ChallengeRound, ...]


# ═══════════════════════════════════════════════════════════════
# ACCOUNT / CONTEXT
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AccountContacts:
    """Delivery targets registered on an account."""

    phone_number: str | None = None
    email: str | None = None

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> AccountContacts:
        return cls(
            phone_number=attributes.get("phone_number") or None,
            email=attributes.get("email") or None,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.phone_number or self.email)


@dataclass(frozen=True)
class LoginContext:
    """Who is logging in and where.

    Attributes:
        user_id: User identifier the session record is keyed by.
        scope: Account scope (user pool or realm).
        client_id: Application client the login runs through.
        contacts: Delivery targets from the account's attributes.
    """

    user_id: str
    scope: str = ""
    client_id: str | None = None
    contacts: AccountContacts = field(default_factory=AccountContacts)


# ═══════════════════════════════════════════════════════════════
# SESSION RECORD
# ═══════════════════════════════════════════════════════════════

# Python attribute -> persisted attribute.
SESSION_FIELDS: dict[str, str] = {
    "flow": "authFlow",
    "otp": "otp",
    "resend_count": "resendCount",
    "last_sent_resend_count": "lastSentResendCount",
    "claimed_resend_count": "claimedResendCount",
    "otp_attempts": "otpAttempts",
}

COUNTER_FIELDS: frozenset[str] = frozenset(
    {"resend_count", "last_sent_resend_count", "claimed_resend_count", "otp_attempts"}
)

SESSION_KEY = "userName"
TTL_ATTRIBUTE = "ttl"


@dataclass(frozen=True)
class LoginSession:
    """Mutable-by-store state backing one login's OTP lifecycle.

    Invariant: ``last_sent_resend_count <= claimed_resend_count <= resend_count``.
    A resend is claimed by the create invocation that will dispatch its code,
    so a duplicate invocation for the same resend sends nothing.
    """

    user_id: str
    flow: AuthFlow
    otp: str | None = None
    resend_count: int = 0
    last_sent_resend_count: int = 0
    claimed_resend_count: int = 0
    otp_attempts: int = 0

    @property
    def has_pending_resend(self) -> bool:
        """True when a resend was requested but no code has gone out for it."""
        return self.resend_count > self.last_sent_resend_count

    @property
    def has_unclaimed_resend(self) -> bool:
        """True when a pending resend has no create invocation dispatching it."""
        return self.resend_count > self.claimed_resend_count

    def to_item(self) -> dict[str, Any]:
        item: dict[str, Any] = {
            SESSION_KEY: self.user_id,
            "authFlow": self.flow.value,
            "resendCount": self.resend_count,
            "lastSentResendCount": self.last_sent_resend_count,
            "claimedResendCount": self.claimed_resend_count,
            "otpAttempts": self.otp_attempts,
        }
        if self.otp is not None:
            item["otp"] = self.otp
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> LoginSession:
        flow = AuthFlow.parse(item.get("authFlow"))
        if flow is None:
            raise ValueError(f"Unrecognized auth flow {item.get('authFlow')!r}")
        otp = item.get("otp")
        return cls(
            user_id=str(item[SESSION_KEY]),
            flow=flow,
            otp=str(otp) if otp is not None else None,
            resend_count=int(item.get("resendCount", 0)),
            last_sent_resend_count=int(item.get("lastSentResendCount", 0)),
            claimed_resend_count=int(item.get("claimedResendCount", 0)),
            otp_attempts=int(item.get("otpAttempts", 0)),
        )


@dataclass(frozen=True)
class SessionUpdate:
    """One atomic, conditional mutation of a session record.

    Stores apply every part or nothing. The record must exist, every
    ``expect_equal`` field must equal its value and every ``expect_below``
    field must be strictly less than its value.

    Attributes:
        set_fields: Fields overwritten with the given values.
        increment: Counter fields increased by the given deltas.
        expect_equal: Guard, field == value.
        expect_below: Guard, field < value.
    """

    set_fields: Mapping[str, Any] = field(default_factory=dict)
    increment: Mapping[str, int] = field(default_factory=dict)
    expect_equal: Mapping[str, Any] = field(default_factory=dict)
    expect_below: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in (*self.set_fields, *self.expect_equal):
            if name not in SESSION_FIELDS:
                raise ValueError(f"Unknown session field {name!r}")
        for name in (*self.increment, *self.expect_below):
            if name not in COUNTER_FIELDS:
                raise ValueError(f"{name!r} is not a counter field")
        overlap = set(self.set_fields) & set(self.increment)
        if overlap:
            raise ValueError(f"Fields both set and incremented: {sorted(overlap)}")

    def violated_guard(self, session: LoginSession) -> str | None:
        """Describe the first guard ``session`` fails, or None if all hold."""
        for name, expected in self.expect_equal.items():
            if getattr(session, name) != expected:
                return f"{name} != {expected!r}"
        for name, bound in self.expect_below.items():
            if getattr(session, name) >= bound:
                return f"{name} >= {bound!r}"
        return None

    def apply(self, session: LoginSession) -> LoginSession:
        changes: dict[str, Any] = dict(self.set_fields)
        for name, delta in self.increment.items():
            changes[name] = getattr(session, name) + delta
        return replace(session, **changes)

    def persisted_values(self) -> dict[str, Any]:
        """``set_fields`` keyed by persisted name, enums flattened."""
        return {
            SESSION_FIELDS[name]: value.value if isinstance(value, Enum) else value
            for name, value in self.set_fields.items()
        }


# ═══════════════════════════════════════════════════════════════
# PHASE OUTPUTS
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ChallengeDescriptor:
    """Challenge presented by the issuer for the next round."""

    step: ChallengeStep

    @property
    def public_parameters(self) -> dict[str, str]:
        return {"challenge": self.step.value}

    @property
    def private_parameters(self) -> dict[str, str]:
        return {"challengeMetadata": self.step.value}

    @property
    def challenge_metadata(self) -> str:
        return self.step.value


@dataclass(frozen=True)
class Decision:
    """Orchestrator verdict for the current round."""

    action: DecisionAction
    reason: FailureReason | None = None

    @classmethod
    def challenge(cls) -> Decision:
        return cls(DecisionAction.CONTINUE)

    @classmethod
    def grant(cls) -> Decision:
        return cls(DecisionAction.ISSUE_TOKENS)

    @classmethod
    def fail(cls, reason: FailureReason) -> Decision:
        return cls(DecisionAction.FAIL, reason)

    @property
    def issue_tokens(self) -> bool:
        return self.action is DecisionAction.ISSUE_TOKENS

    @property
    def fail_authentication(self) -> bool:
        return self.action is DecisionAction.FAIL

    @property
    def is_terminal(self) -> bool:
        return self.action is not DecisionAction.CONTINUE


@dataclass(frozen=True)
class VerificationResult:
    correct: bool
    outcome: VerificationOutcome


# ═══════════════════════════════════════════════════════════════
# PASSWORD RESET RECORD
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PasswordResetRecord:
    """One-time reset code with an absolute expiry (epoch seconds)."""

    user_id: str
    otp: str
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return self.expires_at < now

    def to_item(self) -> dict[str, Any]:
        return {SESSION_KEY: self.user_id, "otp": self.otp, TTL_ATTRIBUTE: self.expires_at}

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> PasswordResetRecord:
        return cls(
            user_id=str(item[SESSION_KEY]),
            otp=str(item["otp"]),
            expires_at=int(item[TTL_ATTRIBUTE]),
        )


__all__: list[str] = [
    "CUSTOM_CHALLENGE",
    "AuthFlow",
    "ChallengeStep",
    "LoginStage",
    "DecisionAction",
    "FailureReason",
    "VerificationOutcome",
    "ChallengeRound",
    "Transcript",
    "AccountContacts",
    "LoginContext",
    "SESSION_FIELDS",
    "COUNTER_FIELDS",
    "SESSION_KEY",
    "TTL_ATTRIBUTE",
    "LoginSession",
    "SessionUpdate",
    "ChallengeDescriptor",
    "Decision",
    "VerificationResult",
    "PasswordResetRecord",
]
