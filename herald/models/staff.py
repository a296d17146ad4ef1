"""Internal staff and role models."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field

from herald.models.channels import ChannelType


class StaffRole(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    permissions: list[str] = []
    is_active: bool = True


class RoleNotificationConfig(BaseModel):
    """Per-role, per-event switch for internal notifications.

    A disabled config drops the role from staff fan-out for that event
    only.  A role with no config for an event is notified whenever a
    routing rule names it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"rnc_{uuid.uuid4().hex[:12]}")
    role_id: str
    event_id: str
    is_enabled: bool = True


class StaffMember(BaseModel):
    """A staff member who may receive internal notifications.

    ``contact_preferences`` lists the channel types the member opted into.
    Routing never forces a channel the member did not choose.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    phone: str | None = None
    role_ids: list[str] = []
    contact_preferences: list[ChannelType] = []
    is_active: bool = True

    def contact_for(self, channel_type: ChannelType) -> str | None:
        """Return the address for *channel_type*, or None if not opted in."""
        if channel_type not in self.contact_preferences:
            return None
        if channel_type in (ChannelType.EMAIL, ChannelType.TEAMS):
            return self.email
        return self.phone
