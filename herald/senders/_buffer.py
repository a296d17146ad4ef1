"""Shared pending-payload buffer for the bundled senders."""

from __future__ import annotations

import re
import threading
from typing import Generic, TypeVar

from herald.core.errors import DeliveryError
from herald.models.channels import ChannelType

_P = TypeVar("_P")

_PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9 ()-]{5,}$")


class PayloadBuffer(Generic[_P]):
    """Thread-safe list of built payloads awaiting a transport."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: list[_P] = []

    def append(self, payload: _P) -> None:
        with self._lock:
            self._pending.append(payload)

    def flush(self) -> list[_P]:
        """Return and clear all pending payloads."""
        with self._lock:
            payloads = list(self._pending)
            self._pending.clear()
        return payloads

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


def check_channel(expected: ChannelType, requested: ChannelType) -> None:
    if ChannelType(requested) != expected:
        raise DeliveryError(
            f"{expected.value} sender cannot deliver {ChannelType(requested).value} messages"
        )


def require_phone(destination: str) -> str:
    """Return *destination* normalised, or raise for a non-phone address."""
    if not destination or not _PHONE_PATTERN.match(destination.strip()):
        raise DeliveryError(f"Invalid phone number: {destination!r}")
    return re.sub(r"[ ()-]", "", destination.strip())
