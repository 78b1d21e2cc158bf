"""Ports (protocols) consumed by the challenge phases and the reset flow.

Adapters must explicitly declare the port they implement, e.g.
``class DynamoDBLoginStateStore(ILoginStateStore):``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .delivery import ChannelKind, DeliveryRecord, OtpMessage
    from .model import (
        AccountContacts,
        LoginContext,
        LoginSession,
        PasswordResetRecord,
        SessionUpdate,
    )


@runtime_checkable
class ILoginStateStore(Protocol):
    """Storage for login session records, one per user identifier.

    Counter mutations go through :meth:`update`, which must be atomic
    against concurrent invocations for the same user.
    """

    async def get(self, user_id: str, *, consistent: bool = True) -> LoginSession | None:
        """Read a session record.

        Args:
            user_id: User identifier.
            consistent: Request a strongly consistent read.

        Returns:
            The record, or None if absent.
        """
        ...

    async def put(self, session: LoginSession) -> None:
        """Create or overwrite a session record."""
        ...

    async def update(self, user_id: str, update: SessionUpdate) -> LoginSession:
        """Apply ``update`` atomically.

        Returns:
            The record after the update.

        Raises:
            ConditionFailedError: If the record is absent or a guard fails.
        """
        ...

    async def delete(self, user_id: str) -> None:
        """Delete a session record. Deleting an absent record is a no-op."""
        ...


@runtime_checkable
class IPasswordResetStore(Protocol):
    """Storage for password-reset records (separate namespace)."""

    async def get(self, user_id: str) -> PasswordResetRecord | None: ...

    async def put(self, record: PasswordResetRecord) -> None: ...

    async def delete(self, user_id: str) -> None: ...


@runtime_checkable
class ICredentialVerifier(Protocol):
    """Validates username/password pairs against the identity backend."""

    async def verify(self, context: LoginContext, password: str) -> bool:
        """Check a password.

        Returns:
            True if the credentials are valid, False if they are not.

        Raises:
            IdentityBackendError: If the backend could not answer.
        """
        ...


@runtime_checkable
class IOtpChannel(Protocol):
    """Delivers a rendered passcode message over one channel."""

    kind: ChannelKind

    async def send(self, target: str, message: OtpMessage) -> DeliveryRecord:
        """Send ``message`` to ``target`` and return the delivery record."""
        ...


@runtime_checkable
class IIdentityDirectory(Protocol):
    """Account lookups and credential updates on the identity backend."""

    async def get_contacts(self, user_id: str, scope: str) -> AccountContacts:
        """Registered delivery targets of an account.

        Raises:
            UserNotFoundError: If the account does not exist.
        """
        ...

    async def list_groups(self, user_id: str, scope: str) -> list[str]:
        """Names of the groups the account belongs to."""
        ...

    async def set_password(self, user_id: str, scope: str, password: str) -> None:
        """Set a permanent password.

        Raises:
            PasswordPolicyError: If the backend rejects the password.
            UserNotFoundError: If the account does not exist.
        """
        ...


__all__: list[str] = [
    "ILoginStateStore",
    "IPasswordResetStore",
    "ICredentialVerifier",
    "IOtpChannel",
    "IIdentityDirectory",
]
