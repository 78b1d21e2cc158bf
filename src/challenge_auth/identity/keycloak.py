"""Keycloak identity backend (python-keycloak).

The account scope is the realm; each adapter is bound to the realm it
was configured with.
"""

from __future__ import annotations

import logging
from typing import Any

from keycloak import KeycloakAdmin, KeycloakOpenID
from keycloak.exceptions import KeycloakAuthenticationError, KeycloakError

from ..config import KeycloakSettings
from ..exceptions import IdentityBackendError, PasswordPolicyError, UserNotFoundError
from ..model import AccountContacts, LoginContext
from ..ports import ICredentialVerifier, IIdentityDirectory

logger = logging.getLogger(__name__)


class KeycloakCredentialVerifier(ICredentialVerifier):
    """Checks passwords with a direct-grant token request.

    The client must have direct access grants enabled. Tokens returned by
    the check are discarded.
    """

    def __init__(self, settings: KeycloakSettings) -> None:
        self.settings = settings
        self._keycloak = KeycloakOpenID(
            server_url=settings.server_url,
            realm_name=settings.realm,
            client_id=settings.client_id,
            client_secret_key=settings.client_secret,
            verify=settings.verify,
        )

    async def verify(self, context: LoginContext, password: str) -> bool:
        try:
            self._keycloak.token(context.user_id, password)
        except KeycloakAuthenticationError:
            logger.info(f"Password rejected for {context.user_id}")
            return False
        except KeycloakError as e:
            if "401" in str(e):
                return False
            raise IdentityBackendError(f"Keycloak auth failed for {context.user_id}: {e}") from e
        return True


class KeycloakIdentityDirectory(IIdentityDirectory):
    """Account lookups and password updates through the Keycloak admin API.

    User identifiers are usernames; they are resolved to Keycloak ids on
    each call.
    """

    def __init__(self, settings: KeycloakSettings) -> None:
        self.settings = settings
        self._admin = self._create_admin_client()

    def _create_admin_client(self) -> KeycloakAdmin:
        """Create a service-account KeycloakAdmin client."""
        return KeycloakAdmin(
            server_url=self.settings.server_url,
            client_id=self.settings.admin_client_id,
            client_secret_key=self.settings.admin_client_secret,
            realm_name=self.settings.realm,
            verify=self.settings.verify,
        )

    def _resolve_id(self, user_id: str) -> str:
        try:
            kc_id = self._admin.get_user_id(user_id)
        except KeycloakError as e:
            raise IdentityBackendError(f"Keycloak lookup failed for {user_id}: {e}") from e
        if not kc_id:
            raise UserNotFoundError()
        return str(kc_id)

    async def get_contacts(self, user_id: str, scope: str) -> AccountContacts:
        kc_id = self._resolve_id(user_id)
        try:
            kc_user: dict[str, Any] = self._admin.get_user(kc_id)
        except KeycloakError as e:
            if "404" in str(e):
                raise UserNotFoundError() from e
            raise IdentityBackendError(f"Keycloak lookup failed for {user_id}: {e}") from e
        attributes: dict[str, Any] = {"email": kc_user.get("email")}
        phone = (kc_user.get("attributes") or {}).get("phone_number")
        # Keycloak stores custom attributes as lists of strings.
        attributes["phone_number"] = phone[0] if isinstance(phone, list) and phone else phone
        return AccountContacts.from_attributes(attributes)

    async def list_groups(self, user_id: str, scope: str) -> list[str]:
        kc_id = self._resolve_id(user_id)
        try:
            groups = self._admin.get_user_groups(kc_id)
        except KeycloakError as e:
            if "404" in str(e):
                raise UserNotFoundError() from e
            raise IdentityBackendError(f"Keycloak group lookup failed for {user_id}: {e}") from e
        return [str(g.get("name", "")) for g in groups]

    async def set_password(self, user_id: str, scope: str, password: str) -> None:
        kc_id = self._resolve_id(user_id)
        try:
            self._admin.set_user_password(kc_id, password, temporary=False)
        except KeycloakError as e:
            logger.error(f"Keycloak password update failed for {user_id}")
            if "404" in str(e):
                raise UserNotFoundError() from e
            if "400" in str(e):
                raise PasswordPolicyError() from e
            raise IdentityBackendError(
                f"Keycloak password update failed for {user_id}: {e}"
            ) from e


__all__: list[str] = ["KeycloakCredentialVerifier", "KeycloakIdentityDirectory"]
