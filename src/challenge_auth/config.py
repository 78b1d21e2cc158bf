"""Configuration for challenge-auth.

Plain frozen dataclasses handed to constructors. ``ChallengeAuthSettings``
can also be read from ``CHALLENGE_AUTH_*`` environment variables for
serverless deployments.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .exceptions import ConfigurationError

ENV_PREFIX = "CHALLENGE_AUTH_"

STORE_BACKENDS = ("memory", "redis", "dynamodb")
IDENTITY_BACKENDS = ("cognito", "keycloak")


@dataclass(frozen=True)
class OtpConfig:
    """Login OTP configuration.

    Attributes:
        code_length: Number of digits per code.
        max_resend: Resend lockout threshold.
        resend_sentinel: Answer that requests a new code.
        test_identities: Phone numbers or user identifiers that receive
            ``test_code`` and are never sent anything. Empty in production.
        test_code: Fixed code for test identities.
        suppress_sms_for_privileged: Deliver by email only to accounts in
            a privileged group.
        privileged_group_marker: Substring identifying privileged groups.
    """

    code_length: int = 4
    max_resend: int = 4
    resend_sentinel: str = "RESEND_OTP"
    test_identities: frozenset[str] = frozenset()
    test_code: str = "1234"
    suppress_sms_for_privileged: bool = True
    privileged_group_marker: str = "PROVIDER"

    def __post_init__(self) -> None:
        if self.code_length < 1:
            raise ConfigurationError("code_length must be positive")
        if self.max_resend < 0:
            raise ConfigurationError("max_resend must not be negative")
        if self.test_identities and (
            len(self.test_code) != self.code_length or not self.test_code.isdigit()
        ):
            raise ConfigurationError(
                f"test_code must be {self.code_length} digits when test identities are set"
            )


@dataclass(frozen=True)
class PasswordResetConfig:
    """Password-reset configuration.

    Attributes:
        code_length: Number of digits per reset code.
        ttl_seconds: Lifetime of a reset code.
        min_password_length: Local minimum for the new password.
    """

    code_length: int = 4
    ttl_seconds: int = 300  # 5 minutes
    min_password_length: int = 8


@dataclass(frozen=True)
class KeycloakSettings:
    """Keycloak connection used when ``identity_backend == "keycloak"``."""

    server_url: str
    realm: str
    client_id: str
    client_secret: str | None = None
    admin_client_id: str = "admin-cli"
    admin_client_secret: str | None = None
    verify: bool = True


@dataclass(frozen=True)
class ChallengeAuthSettings:
    """Deployment settings.

    Attributes:
        store_backend: ``memory``, ``redis`` or ``dynamodb``.
        identity_backend: ``cognito`` or ``keycloak``.
        region_name: AWS region for DynamoDB, SNS, SES and Cognito.
        session_table: Table holding login session records.
        reset_table: Table holding password-reset records.
        redis_url: Redis URL for the redis backend.
        key_prefix: Redis key prefix.
        session_ttl_seconds: Retention of abandoned login records.
        reset_retention_seconds: Retention of reset records past expiry.
        from_email: Sender address for email delivery.
        sms_sender_id: SNS sender id shown on SMS, where carriers allow it.
        sms_app_hash: Android SMS Retriever hash appended to SMS for autofill.
        brand_name: Product name used in messages.
        keycloak: Keycloak connection (keycloak backend only).
        otp: Login OTP configuration.
        reset: Password-reset configuration.
    """

    store_backend: str = "dynamodb"
    identity_backend: str = "cognito"
    region_name: str = "us-east-1"
    session_table: str = "UserAuthState"
    reset_table: str = "UserPasswordReset"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "challenge_auth"
    session_ttl_seconds: int = 3600
    reset_retention_seconds: int = 3600
    from_email: str | None = None
    sms_sender_id: str | None = None
    sms_app_hash: str | None = None
    brand_name: str = "Account"
    keycloak: KeycloakSettings | None = None
    otp: OtpConfig = field(default_factory=OtpConfig)
    reset: PasswordResetConfig = field(default_factory=PasswordResetConfig)

    def __post_init__(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            raise ConfigurationError(
                f"store_backend must be one of {STORE_BACKENDS}, got {self.store_backend!r}"
            )
        if self.identity_backend not in IDENTITY_BACKENDS:
            raise ConfigurationError(
                f"identity_backend must be one of {IDENTITY_BACKENDS}, "
                f"got {self.identity_backend!r}"
            )
        if self.identity_backend == "keycloak" and self.keycloak is None:
            raise ConfigurationError("keycloak settings are required for the keycloak backend")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ChallengeAuthSettings:
        """Build settings from ``CHALLENGE_AUTH_*`` variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ConfigurationError: If a value cannot be parsed.
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str | None = None) -> str | None:
            return env.get(ENV_PREFIX + name, default)

        otp = OtpConfig(
            code_length=_int(get("OTP_LENGTH", "4"), "OTP_LENGTH"),
            max_resend=_int(get("MAX_RESEND", "4"), "MAX_RESEND"),
            test_identities=_csv(get("TEST_IDENTITIES", "")),
            test_code=get("TEST_CODE", "1234") or "1234",
            suppress_sms_for_privileged=_bool(get("SUPPRESS_PRIVILEGED_SMS", "true")),
            privileged_group_marker=get("PRIVILEGED_GROUP_MARKER", "PROVIDER") or "PROVIDER",
        )
        reset = PasswordResetConfig(
            code_length=_int(get("RESET_OTP_LENGTH", "4"), "RESET_OTP_LENGTH"),
            ttl_seconds=_int(get("RESET_TTL_SECONDS", "300"), "RESET_TTL_SECONDS"),
            min_password_length=_int(get("MIN_PASSWORD_LENGTH", "8"), "MIN_PASSWORD_LENGTH"),
        )

        keycloak: KeycloakSettings | None = None
        if get("KEYCLOAK_SERVER_URL"):
            keycloak = KeycloakSettings(
                server_url=get("KEYCLOAK_SERVER_URL") or "",
                realm=get("KEYCLOAK_REALM") or "",
                client_id=get("KEYCLOAK_CLIENT_ID") or "",
                client_secret=get("KEYCLOAK_CLIENT_SECRET"),
                admin_client_id=get("KEYCLOAK_ADMIN_CLIENT_ID", "admin-cli") or "admin-cli",
                admin_client_secret=get("KEYCLOAK_ADMIN_CLIENT_SECRET"),
                verify=_bool(get("KEYCLOAK_VERIFY", "true")),
            )

        return cls(
            store_backend=get("STORE_BACKEND", "dynamodb") or "dynamodb",
            identity_backend=get("IDENTITY_BACKEND", "cognito") or "cognito",
            region_name=get("REGION", env.get("AWS_REGION", "us-east-1")) or "us-east-1",
            session_table=get("SESSION_TABLE", "UserAuthState") or "UserAuthState",
            reset_table=get("RESET_TABLE", "UserPasswordReset") or "UserPasswordReset",
            redis_url=get("REDIS_URL", "redis://localhost:6379/0") or "",
            key_prefix=get("KEY_PREFIX", "challenge_auth") or "challenge_auth",
            session_ttl_seconds=_int(get("SESSION_TTL_SECONDS", "3600"), "SESSION_TTL_SECONDS"),
            reset_retention_seconds=_int(
                get("RESET_RETENTION_SECONDS", "3600"), "RESET_RETENTION_SECONDS"
            ),
            from_email=get("FROM_EMAIL"),
            sms_sender_id=get("SMS_SENDER_ID"),
            sms_app_hash=get("SMS_APP_HASH"),
            brand_name=get("BRAND_NAME", "Account") or "Account",
            keycloak=keycloak,
            otp=otp,
            reset=reset,
        )


def _int(raw: str | None, name: str) -> int:
    try:
        return int(raw or "")
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e


def _bool(raw: str | None) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


def _csv(raw: str | None) -> frozenset[str]:
    return frozenset(part.strip() for part in (raw or "").split(",") if part.strip())


__all__: list[str] = [
    "OtpConfig",
    "PasswordResetConfig",
    "KeycloakSettings",
    "ChallengeAuthSettings",
]
