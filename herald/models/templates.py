"""Message template models."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator

from herald.models.routing import RecipientType

# ``{{ name }}``, whitespace inside the braces tolerated.
TOKEN_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def extract_variables(text: str) -> list[str]:
    """Return the distinct token names in *text*, in first-seen order."""
    seen: dict[str, None] = {}
    for match in TOKEN_PATTERN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


class MessageTemplate(BaseModel):
    """A template keyed by ``(event_id, channel_id, recipient_type)``.

    ``variables`` is derived from the subject and body on construction;
    whatever the caller passes in is ignored.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    channel_id: str
    recipient_type: RecipientType
    subject: str | None = None
    body: str
    variables: list[str] = []
    is_active: bool = True
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @model_validator(mode="before")
    @classmethod
    def _derive_variables(cls, data):
        if isinstance(data, dict):
            text = (data.get("subject") or "") + "\n" + (data.get("body") or "")
            data = {**data, "variables": extract_variables(text)}
        return data

    @property
    def key(self) -> tuple[str, str, RecipientType]:
        return (self.event_id, self.channel_id, self.recipient_type)


class RenderedContent(BaseModel):
    """Template output ready to hand to a channel sender."""

    model_config = ConfigDict(frozen=True)

    template_id: str
    subject: str | None = None
    body: str
    unresolved: list[str] = []
