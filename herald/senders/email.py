"""Email sender — builds email payloads for an SMTP/ESP transport (stub).

This module does NOT send email.  It constructs the payload, stores it in
a buffer for later retrieval by a transport layer or test harness, and
returns a receipt.
"""

from __future__ import annotations

import html
import logging

from pydantic import BaseModel, ConfigDict

from herald.core.errors import DeliveryError
from herald.models.channels import ChannelType
from herald.models.messages import SendReceipt
from herald.models.templates import RenderedContent
from herald.senders._buffer import PayloadBuffer, check_channel

logger = logging.getLogger(__name__)


class EmailPayload(BaseModel):
    """An email payload ready for SMTP delivery."""

    model_config = ConfigDict(frozen=True)

    recipient: str
    sender: str
    subject: str
    body_text: str
    body_html: str = ""
    reply_to: str = ""
    headers: dict[str, str] = {}


class EmailSender:
    """Builds email payloads from rendered content (stub).

    Parameters
    ----------
    sender:
        The From address.
    reply_to:
        Optional Reply-To address; replies feed the delivery webhook.
    """

    def __init__(self, sender: str = "noreply@company.com", reply_to: str = "") -> None:
        self._sender = sender
        self._reply_to = reply_to
        self._buffer: PayloadBuffer[EmailPayload] = PayloadBuffer()

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.EMAIL

    def send(
        self,
        channel_type: ChannelType,
        destination: str,
        content: RenderedContent,
    ) -> SendReceipt:
        check_channel(ChannelType.EMAIL, channel_type)
        if "@" not in (destination or ""):
            raise DeliveryError(f"Invalid email address: {destination!r}")

        receipt = SendReceipt(channel_type=ChannelType.EMAIL.value, destination=destination)
        payload = EmailPayload(
            recipient=destination,
            sender=self._sender,
            subject=content.subject or "",
            body_text=content.body,
            body_html=self._format_body_html(content.body),
            reply_to=self._reply_to,
            headers={
                "X-Herald-Template-Id": content.template_id,
                "X-Herald-Provider-Ref": receipt.provider_reference,
            },
        )
        self._buffer.append(payload)
        logger.debug("EmailSender: queued email to %s", destination)
        return receipt

    def flush(self) -> list[EmailPayload]:
        """Return and clear all pending payloads."""
        return self._buffer.flush()

    @property
    def pending_count(self) -> int:
        return len(self._buffer)

    @staticmethod
    def _format_body_html(body: str) -> str:
        paragraphs = [p.strip() for p in body.split("\n\n") if p.strip()]
        return "\n".join(
            "<p>" + html.escape(p).replace("\n", "<br/>") + "</p>" for p in paragraphs
        )
