"""Factory functions wiring :class:`ChallengeAuthSettings` into components.

Example:
    ```python
    components = create_components(ChallengeAuthSettings.from_env())
    event = await components.triggers.define(event)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass

from .aws import AwsClientManager
from .channels import InMemoryOtpChannel, SesEmailChannel, SnsSmsChannel
from .config import ChallengeAuthSettings
from .delivery import ChannelKind
from .exceptions import ConfigurationError
from .issuer import ChallengeIssuer
from .orchestrator import AuthChallengeOrchestrator
from .otp import OtpDispatcher, OtpGenerator
from .ports import (
    ICredentialVerifier,
    IIdentityDirectory,
    ILoginStateStore,
    IOtpChannel,
    IPasswordResetStore,
)
from .reset import PasswordResetEndpoints, PasswordResetService
from .triggers import CognitoTriggerAdapter
from .verifier import AnswerVerifier


@dataclass(frozen=True)
class ChallengeAuthComponents:
    """Everything a deployment needs, built from one settings object."""

    settings: ChallengeAuthSettings
    orchestrator: AuthChallengeOrchestrator
    issuer: ChallengeIssuer
    verifier: AnswerVerifier
    triggers: CognitoTriggerAdapter
    reset_service: PasswordResetService
    reset_endpoints: PasswordResetEndpoints


def create_stores(
    settings: ChallengeAuthSettings,
) -> tuple[ILoginStateStore, IPasswordResetStore]:
    """Login session and password-reset stores for ``settings.store_backend``."""
    if settings.store_backend == "memory":
        from .stores.memory import InMemoryLoginStateStore, InMemoryPasswordResetStore

        return InMemoryLoginStateStore(), InMemoryPasswordResetStore()

    if settings.store_backend == "redis":
        from redis.asyncio import from_url

        from .stores.redis import RedisLoginStateStore, RedisPasswordResetStore

        client = from_url(settings.redis_url)
        return (
            RedisLoginStateStore(
                client,
                key_prefix=settings.key_prefix,
                ttl_seconds=settings.session_ttl_seconds,
            ),
            RedisPasswordResetStore(
                client,
                key_prefix=settings.key_prefix,
                retention_seconds=settings.reset_retention_seconds,
            ),
        )

    if settings.store_backend == "dynamodb":
        from .stores.dynamodb import DynamoDBLoginStateStore, DynamoDBPasswordResetStore

        manager = AwsClientManager("dynamodb", settings.region_name)
        return (
            DynamoDBLoginStateStore(
                settings.session_table,
                client_manager=manager,
                ttl_seconds=settings.session_ttl_seconds,
            ),
            DynamoDBPasswordResetStore(settings.reset_table, client_manager=manager),
        )

    raise ConfigurationError(f"Unknown store backend {settings.store_backend!r}")


def create_identity(
    settings: ChallengeAuthSettings,
) -> tuple[ICredentialVerifier, IIdentityDirectory]:
    """Credential verifier and identity directory for ``settings.identity_backend``."""
    if settings.identity_backend == "cognito":
        from .identity.cognito import CognitoCredentialVerifier, CognitoIdentityDirectory

        manager = AwsClientManager("cognito-idp", settings.region_name)
        return (
            CognitoCredentialVerifier(client_manager=manager),
            CognitoIdentityDirectory(client_manager=manager),
        )

    if settings.identity_backend == "keycloak":
        from .identity.keycloak import KeycloakCredentialVerifier, KeycloakIdentityDirectory

        if settings.keycloak is None:
            raise ConfigurationError("keycloak settings are required for the keycloak backend")
        return (
            KeycloakCredentialVerifier(settings.keycloak),
            KeycloakIdentityDirectory(settings.keycloak),
        )

    raise ConfigurationError(f"Unknown identity backend {settings.identity_backend!r}")


def create_channels(settings: ChallengeAuthSettings) -> list[IOtpChannel]:
    """SMS and email channels.

    The memory backend gets in-memory fakes so local runs never send
    anything.
    """
    if settings.store_backend == "memory":
        return [InMemoryOtpChannel(ChannelKind.SMS), InMemoryOtpChannel(ChannelKind.EMAIL)]

    channels: list[IOtpChannel] = [
        SnsSmsChannel(
            settings.region_name,
            sender_id=settings.sms_sender_id,
            app_hash=settings.sms_app_hash,
        )
    ]
    if settings.from_email:
        channels.append(SesEmailChannel(settings.region_name, from_email=settings.from_email))
    return channels


def create_components(
    settings: ChallengeAuthSettings,
    *,
    stores: tuple[ILoginStateStore, IPasswordResetStore] | None = None,
    identity: tuple[ICredentialVerifier, IIdentityDirectory] | None = None,
    channels: list[IOtpChannel] | None = None,
) -> ChallengeAuthComponents:
    """Build all components; any adapter group can be supplied instead."""
    session_store, reset_store = stores or create_stores(settings)
    credentials, directory = identity or create_identity(settings)
    dispatcher = OtpDispatcher(
        channels if channels is not None else create_channels(settings),
        directory=directory,
        config=settings.otp,
        brand_name=settings.brand_name,
    )

    orchestrator = AuthChallengeOrchestrator(store=session_store, config=settings.otp)
    issuer = ChallengeIssuer(
        store=session_store,
        dispatcher=dispatcher,
        generator=OtpGenerator(settings.otp),
    )
    verifier = AnswerVerifier(store=session_store, credentials=credentials, config=settings.otp)
    reset_service = PasswordResetService(
        store=reset_store,
        directory=directory,
        dispatcher=dispatcher,
        config=settings.reset,
    )
    return ChallengeAuthComponents(
        settings=settings,
        orchestrator=orchestrator,
        issuer=issuer,
        verifier=verifier,
        triggers=CognitoTriggerAdapter(orchestrator, issuer, verifier),
        reset_service=reset_service,
        reset_endpoints=PasswordResetEndpoints(reset_service),
    )


__all__: list[str] = [
    "ChallengeAuthComponents",
    "create_stores",
    "create_identity",
    "create_channels",
    "create_components",
]
