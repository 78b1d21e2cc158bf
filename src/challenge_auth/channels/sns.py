"""AWS SNS SMS channel (aiobotocore)."""

from __future__ import annotations

import logging

from ..aws import AwsClientManager
from ..delivery import ChannelKind, DeliveryRecord, OtpMessage
from ..ports import IOtpChannel

logger = logging.getLogger(__name__)


class SnsSmsChannel(IOtpChannel):
    """
    Sends passcodes as transactional SMS through SNS ``Publish``.

    Requires AWS credentials and region configuration.
    """

    kind = ChannelKind.SMS

    def __init__(
        self,
        region_name: str = "us-east-1",
        *,
        client_manager: AwsClientManager | None = None,
        sender_id: str | None = None,
        app_hash: str | None = None,
    ) -> None:
        """Initialize the channel.

        Args:
            region_name: AWS region.
            client_manager: Shared SNS client manager.
            sender_id: Optional alphanumeric sender id.
            app_hash: Appended on its own line for mobile SMS autofill.
        """
        self._clients = client_manager or AwsClientManager("sns", region_name)
        self.sender_id = sender_id
        self.app_hash = app_hash

    async def send(self, target: str, message: OtpMessage) -> DeliveryRecord:
        text = message.sms_text
        if self.app_hash:
            text = f"{text}\n{self.app_hash}"

        attributes = {
            "AWS.SNS.SMS.SMSType": {"DataType": "String", "StringValue": "Transactional"}
        }
        if self.sender_id:
            attributes["AWS.SNS.SMS.SenderID"] = {
                "DataType": "String",
                "StringValue": self.sender_id,
            }

        try:
            client = await self._clients.get_client()
            response = await client.publish(
                PhoneNumber=target,
                Message=text,
                MessageAttributes=attributes,
            )
            logger.info(f"SMS sent to {target} via SNS (MessageId: {response['MessageId']})")
            return DeliveryRecord.sent(target, self.kind, provider_id=response["MessageId"])

        except Exception as e:
            logger.error(f"Failed to send SMS via SNS to {target}: {str(e)}")
            return DeliveryRecord.failed(target, self.kind, error=str(e))


__all__: list[str] = ["SnsSmsChannel"]
