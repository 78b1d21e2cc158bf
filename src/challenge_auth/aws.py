"""aiobotocore client management shared by the AWS adapters."""

from __future__ import annotations

from typing import Any

from aiobotocore.session import AioSession


class AwsClientManager:
    """Lazily opens and caches one aiobotocore client for a service."""

    def __init__(
        self,
        service_name: str,
        region_name: str = "us-east-1",
        *,
        session: AioSession | None = None,
        **client_kwargs: Any,
    ) -> None:
        """Configure service, region and optional session/client kwargs."""
        self.service_name = service_name
        self._region = region_name
        self._session = session or AioSession()
        self._client_kwargs = client_kwargs
        self._client: Any = None
        self._client_cm: Any = None

    async def get_client(self) -> Any:
        """Return the shared client; create it if needed."""
        if self._client is None:
            self._client_cm = self._session.create_client(
                self.service_name,
                region_name=self._region,
                **self._client_kwargs,
            )
            self._client = await self._client_cm.__aenter__()
        return self._client

    async def close(self) -> None:
        """Close the client if open."""
        if self._client_cm is not None:
            await self._client_cm.__aexit__(None, None, None)
            self._client_cm = None
            self._client = None


def error_code(error: BaseException) -> str | None:
    """AWS error code carried by a botocore ``ClientError``, if any."""
    response = getattr(error, "response", None) or {}
    code = response.get("Error", {}).get("Code")
    return str(code) if code else None


__all__: list[str] = ["AwsClientManager", "error_code"]
