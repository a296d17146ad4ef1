"""Microsoft Teams sender — builds incoming-webhook message cards (stub).

Internal staff are addressed by their work email, which the card mentions.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from herald.core.errors import DeliveryError
from herald.models.channels import ChannelType
from herald.models.messages import SendReceipt
from herald.models.templates import RenderedContent
from herald.senders._buffer import PayloadBuffer, check_channel

logger = logging.getLogger(__name__)


class TeamsPayload(BaseModel):
    """A Teams incoming-webhook ``MessageCard`` payload."""

    model_config = ConfigDict(frozen=True)

    mention: str
    title: str = ""
    text: str
    theme_color: str = "0076D7"


class TeamsSender:
    """Builds Teams payloads from rendered content (stub)."""

    def __init__(self, webhook_url: str = "") -> None:
        self._webhook_url = webhook_url
        self._buffer: PayloadBuffer[TeamsPayload] = PayloadBuffer()

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.TEAMS

    @property
    def webhook_url(self) -> str:
        return self._webhook_url

    def send(
        self,
        channel_type: ChannelType,
        destination: str,
        content: RenderedContent,
    ) -> SendReceipt:
        check_channel(ChannelType.TEAMS, channel_type)
        if "@" not in (destination or ""):
            raise DeliveryError(f"Invalid Teams user principal: {destination!r}")
        self._buffer.append(
            TeamsPayload(mention=destination, title=content.subject or "", text=content.body)
        )
        logger.debug("TeamsSender: queued card for %s", destination)
        return SendReceipt(channel_type=ChannelType.TEAMS.value, destination=destination)

    def flush(self) -> list[TeamsPayload]:
        return self._buffer.flush()

    @property
    def pending_count(self) -> int:
        return len(self._buffer)
