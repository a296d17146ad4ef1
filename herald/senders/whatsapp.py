"""WhatsApp sender — builds WhatsApp Business API payloads (stub)."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict

from herald.models.channels import ChannelType
from herald.models.messages import SendReceipt
from herald.models.templates import RenderedContent
from herald.senders._buffer import PayloadBuffer, check_channel, require_phone

logger = logging.getLogger(__name__)


class WhatsAppPayload(BaseModel):
    """A WhatsApp Business API ``messages`` payload."""

    model_config = ConfigDict(frozen=True)

    messaging_product: str = "whatsapp"
    to: str
    type: str = "text"
    text: dict[str, Any]


class WhatsAppSender:
    """Builds WhatsApp payloads from rendered content (stub)."""

    def __init__(self, phone_number_id: str = "", access_token: str = "") -> None:
        self._phone_number_id = phone_number_id
        self._access_token = access_token
        self._buffer: PayloadBuffer[WhatsAppPayload] = PayloadBuffer()

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.WHATSAPP

    def send(
        self,
        channel_type: ChannelType,
        destination: str,
        content: RenderedContent,
    ) -> SendReceipt:
        check_channel(ChannelType.WHATSAPP, channel_type)
        number = require_phone(destination).lstrip("+")
        text = content.body
        if content.subject:
            text = f"*{content.subject}*\n\n{text}"
        self._buffer.append(
            WhatsAppPayload(to=number, text={"preview_url": False, "body": text})
        )
        logger.debug("WhatsAppSender: queued message to %s", number)
        return SendReceipt(channel_type=ChannelType.WHATSAPP.value, destination=number)

    def flush(self) -> list[WhatsAppPayload]:
        return self._buffer.flush()

    @property
    def pending_count(self) -> int:
        return len(self._buffer)

    def build_api_url(self) -> str:
        """Return the Graph API messages URL, or "" without a phone number id."""
        if not self._phone_number_id:
            return ""
        return f"https://graph.facebook.com/v19.0/{self._phone_number_id}/messages"
