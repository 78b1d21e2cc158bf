"""AWS SES email channel (aiobotocore)."""

from __future__ import annotations

import logging
from typing import Any

from ..aws import AwsClientManager
from ..delivery import ChannelKind, DeliveryRecord, OtpMessage
from ..ports import IOtpChannel

logger = logging.getLogger(__name__)


class SesEmailChannel(IOtpChannel):
    """
    AWS SES email channel using aiobotocore.

    Requires AWS credentials and region configuration.
    """

    kind = ChannelKind.EMAIL

    def __init__(
        self,
        region_name: str = "us-east-1",
        *,
        from_email: str | None = None,
        client_manager: AwsClientManager | None = None,
    ) -> None:
        self.from_email = from_email
        self._clients = client_manager or AwsClientManager("ses", region_name)

    async def send(self, target: str, message: OtpMessage) -> DeliveryRecord:
        if not self.from_email:
            raise ValueError("Sender email (from_email) is required.")

        try:
            client = await self._clients.get_client()

            params: dict[str, Any] = {
                "Source": self.from_email,
                "Destination": {"ToAddresses": [target]},
                "Message": {
                    "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": message.body_text, "Charset": "UTF-8"},
                        "Html": {"Data": message.body_html, "Charset": "UTF-8"},
                    },
                },
            }
            response = await client.send_email(**params)

            logger.info(f"Email sent to {target} via SES (MessageId: {response['MessageId']})")
            return DeliveryRecord.sent(target, self.kind, provider_id=response["MessageId"])

        except Exception as e:
            logger.error(f"Failed to send email via SES to {target}: {str(e)}")
            return DeliveryRecord.failed(target, self.kind, error=str(e))


__all__: list[str] = ["SesEmailChannel"]
