"""Amazon Cognito identity backend (aiobotocore ``cognito-idp``).

The account scope is the user pool id.
"""

from __future__ import annotations

import logging

from ..aws import AwsClientManager, error_code
from ..exceptions import IdentityBackendError, PasswordPolicyError, UserNotFoundError
from ..model import AccountContacts, LoginContext
from ..ports import ICredentialVerifier, IIdentityDirectory

logger = logging.getLogger(__name__)

# Codes meaning "these credentials are not valid" rather than a backend fault.
REJECTED_CREDENTIAL_CODES = frozenset(
    {
        "NotAuthorizedException",
        "UserNotFoundException",
        "PasswordResetRequiredException",
        "UserNotConfirmedException",
    }
)


class CognitoCredentialVerifier(ICredentialVerifier):
    """Checks passwords with ``AdminInitiateAuth`` (``ADMIN_USER_PASSWORD_AUTH``).

    The app client must have the admin user-password flow enabled. Tokens
    returned by the check are discarded.
    """

    def __init__(
        self,
        region_name: str = "us-east-1",
        *,
        client_id: str | None = None,
        client_manager: AwsClientManager | None = None,
    ) -> None:
        """Initialize the verifier.

        Args:
            region_name: AWS region.
            client_id: App client id used when the login context has none.
            client_manager: Shared ``cognito-idp`` client manager.
        """
        self.client_id = client_id
        self._clients = client_manager or AwsClientManager("cognito-idp", region_name)

    async def verify(self, context: LoginContext, password: str) -> bool:
        client_id = context.client_id or self.client_id
        if not client_id or not context.scope:
            raise IdentityBackendError(
                f"User pool and app client are required to verify {context.user_id}"
            )

        client = await self._clients.get_client()
        try:
            await client.admin_initiate_auth(
                UserPoolId=context.scope,
                ClientId=client_id,
                AuthFlow="ADMIN_USER_PASSWORD_AUTH",
                AuthParameters={"USERNAME": context.user_id, "PASSWORD": password},
            )
        except Exception as e:
            code = error_code(e)
            if code in REJECTED_CREDENTIAL_CODES:
                logger.info(f"Password rejected for {context.user_id} ({code})")
                return False
            raise IdentityBackendError(f"Cognito auth failed for {context.user_id}: {e}") from e
        return True


class CognitoIdentityDirectory(IIdentityDirectory):
    """Account lookups and password updates through Cognito admin APIs."""

    def __init__(
        self,
        region_name: str = "us-east-1",
        *,
        client_manager: AwsClientManager | None = None,
    ) -> None:
        self._clients = client_manager or AwsClientManager("cognito-idp", region_name)

    async def get_contacts(self, user_id: str, scope: str) -> AccountContacts:
        client = await self._clients.get_client()
        try:
            response = await client.admin_get_user(UserPoolId=scope, Username=user_id)
        except Exception as e:
            if error_code(e) == "UserNotFoundException":
                raise UserNotFoundError() from e
            raise IdentityBackendError(f"Cognito lookup failed for {user_id}: {e}") from e
        attributes = {a["Name"]: a.get("Value") for a in response.get("UserAttributes", [])}
        return AccountContacts.from_attributes(attributes)

    async def list_groups(self, user_id: str, scope: str) -> list[str]:
        client = await self._clients.get_client()
        groups: list[str] = []
        kwargs: dict[str, str] = {"UserPoolId": scope, "Username": user_id}
        try:
            while True:
                response = await client.admin_list_groups_for_user(**kwargs)
                groups.extend(g["GroupName"] for g in response.get("Groups", []))
                next_token = response.get("NextToken")
                if not next_token:
                    break
                kwargs["NextToken"] = next_token
        except Exception as e:
            raise IdentityBackendError(f"Cognito group lookup failed for {user_id}: {e}") from e
        return groups

    async def set_password(self, user_id: str, scope: str, password: str) -> None:
        client = await self._clients.get_client()
        try:
            await client.admin_set_user_password(
                UserPoolId=scope,
                Username=user_id,
                Password=password,
                Permanent=True,
            )
        except Exception as e:
            code = error_code(e)
            logger.error(f"Cognito password update failed for {user_id} ({code})")
            if code == "InvalidPasswordException":
                raise PasswordPolicyError() from e
            if code == "UserNotFoundException":
                raise UserNotFoundError() from e
            raise IdentityBackendError(f"Cognito password update failed for {user_id}: {e}") from e


__all__: list[str] = ["CognitoCredentialVerifier", "CognitoIdentityDirectory"]
