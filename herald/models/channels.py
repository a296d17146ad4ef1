"""Channel models — the delivery media a message can travel over."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ChannelType(str, Enum):
    """Supported delivery media."""

    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    TEAMS = "teams"


class Channel(BaseModel):
    """A configured delivery channel.

    Inactive channels are never selected as routing or escalation targets.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: ChannelType
    name: str
    description: str = ""
    is_active: bool = True
    config: dict[str, str] = {}
