"""Channel sender protocol and registry.

A ``ChannelSender`` hands one rendered message to a delivery provider and
returns a ``SendReceipt``; provider rejection is signalled by raising
``DeliveryError``.  Senders do not wait for delivery confirmation: that
arrives later through the delivery webhook receiver.

The bundled senders build provider payloads into a pending buffer without
doing network I/O; a deployment swaps in real provider clients behind the
same protocol.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from herald.core.errors import DeliveryError
from herald.models.channels import ChannelType
from herald.models.messages import SendReceipt
from herald.models.templates import RenderedContent

logger = logging.getLogger(__name__)


@runtime_checkable
class ChannelSender(Protocol):
    """Protocol every channel sender implements.

    Attributes
    ----------
    channel_type : ChannelType
        The channel type this sender delivers for.
    """

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type handled by this sender."""
        ...

    def send(
        self,
        channel_type: ChannelType,
        destination: str,
        content: RenderedContent,
    ) -> SendReceipt:
        """Hand *content* to the provider for *destination*.

        Raises
        ------
        DeliveryError
            If the provider rejects the message.
        """
        ...


class SenderRegistry:
    """Maps channel types to their registered sender.

    Usage
    -----
    >>> registry = SenderRegistry()
    >>> registry.register(EmailSender())
    >>> registry.send(ChannelType.EMAIL, "a@b.example", content)
    """

    def __init__(self, senders: list[ChannelSender] | None = None) -> None:
        self._senders: dict[ChannelType, ChannelSender] = {}
        for sender in senders or []:
            self.register(sender)

    def register(self, sender: ChannelSender) -> None:
        """Register *sender*, replacing any sender for the same channel type."""
        previous = self._senders.get(sender.channel_type)
        self._senders[sender.channel_type] = sender
        if previous is not None and previous is not sender:
            logger.info("Replaced sender for channel type %s", sender.channel_type.value)
        else:
            logger.debug("Registered sender for channel type %s", sender.channel_type.value)

    def get(self, channel_type: ChannelType) -> ChannelSender | None:
        return self._senders.get(ChannelType(channel_type))

    @property
    def channel_types(self) -> list[ChannelType]:
        return list(self._senders)

    def send(
        self,
        channel_type: ChannelType,
        destination: str,
        content: RenderedContent,
    ) -> SendReceipt:
        """Route a send to the sender for *channel_type*.

        Raises
        ------
        DeliveryError
            If no sender is registered or the sender rejects the message.
        """
        sender = self.get(channel_type)
        if sender is None:
            raise DeliveryError(f"No sender registered for channel type {channel_type}")
        return sender.send(ChannelType(channel_type), destination, content)


def default_registry(sender_address: str = "noreply@company.com") -> SenderRegistry:
    """Return a registry with the bundled payload-building senders."""
    from herald.senders.email import EmailSender
    from herald.senders.sms import SmsSender
    from herald.senders.teams import TeamsSender
    from herald.senders.whatsapp import WhatsAppSender

    return SenderRegistry([
        EmailSender(sender=sender_address),
        SmsSender(),
        WhatsAppSender(),
        TeamsSender(),
    ])
