"""Error taxonomy for the Herald engine.

``ConfigurationError`` and its subclasses describe operator-fixable setup
problems; they are surfaced, never retried automatically.  ``DeliveryError``
is raised by channel senders and recorded on the message log.  Anomalies
(out-of-order or duplicate delivery callbacks) are reported through
``warnings``-style ``AnomalyWarning`` records and logged, never raised to
callers.
"""

from __future__ import annotations


class HeraldError(RuntimeError):
    """Base class for all Herald engine errors."""


class ConfigurationError(HeraldError):
    """Raised when configuration prevents a target from being processed."""


class TemplateNotFoundError(ConfigurationError):
    """Raised when no active template exists for a routing key."""

    def __init__(self, event_id: str, channel_id: str, recipient_type: str) -> None:
        self.event_id = event_id
        self.channel_id = channel_id
        self.recipient_type = recipient_type
        super().__init__(
            f"No active template for event={event_id} channel={channel_id} "
            f"recipient_type={recipient_type}"
        )


class UnresolvableRecipientError(ConfigurationError):
    """Raised when a recipient has no contact address for a channel."""


class DeliveryError(HeraldError):
    """Raised by a channel sender when the provider rejects a send."""


class ConcurrencyConflictError(HeraldError):
    """Raised by a store when a compare-and-set update loses a race."""


class MessageNotFoundError(KeyError):
    """Raised when a message id does not exist in the log store."""


class AnomalyWarning(UserWarning):
    """An ignored delivery callback (out-of-order, duplicate, or post-terminal).

    Instances are recorded and logged by the status machine; they are never
    raised to the caller.
    """

    def __init__(self, message_id: str, current: str, reported: str) -> None:
        self.message_id = message_id
        self.current = current
        self.reported = reported
        super().__init__(
            f"Ignored callback for {message_id}: reported {reported} "
            f"while status is {current}"
        )
