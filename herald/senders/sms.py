"""SMS sender — builds SMS gateway payloads (stub)."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from herald.models.channels import ChannelType
from herald.models.messages import SendReceipt
from herald.models.templates import RenderedContent
from herald.senders._buffer import PayloadBuffer, check_channel, require_phone

logger = logging.getLogger(__name__)

# A single GSM-7 SMS segment; longer bodies are split.
SEGMENT_LENGTH = 160


class SmsPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    to: str
    sender_id: str
    body: str
    segments: int = 1


class SmsSender:
    """Builds SMS payloads from rendered content (stub).

    The subject line is dropped; SMS carries the body only.
    """

    def __init__(self, sender_id: str = "ONBOARD") -> None:
        self._sender_id = sender_id
        self._buffer: PayloadBuffer[SmsPayload] = PayloadBuffer()

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.SMS

    def send(
        self,
        channel_type: ChannelType,
        destination: str,
        content: RenderedContent,
    ) -> SendReceipt:
        check_channel(ChannelType.SMS, channel_type)
        number = require_phone(destination)
        segments = max(1, -(-len(content.body) // SEGMENT_LENGTH))
        self._buffer.append(
            SmsPayload(
                to=number,
                sender_id=self._sender_id,
                body=content.body,
                segments=segments,
            )
        )
        logger.debug("SmsSender: queued %d segment(s) to %s", segments, number)
        return SendReceipt(channel_type=ChannelType.SMS.value, destination=number)

    def flush(self) -> list[SmsPayload]:
        return self._buffer.flush()

    @property
    def pending_count(self) -> int:
        return len(self._buffer)
