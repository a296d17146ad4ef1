"""Routing models — which channel(s) and recipient(s) an event reaches."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from herald.models.channels import ChannelType


class RecipientType(str, Enum):
    CUSTOMER = "customer"
    INTERNAL_STAFF = "internal_staff"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class RoutingCondition(BaseModel):
    """A predicate over one field of the application snapshot.

    ``field`` names a top-level application attribute or, failing that, a
    key in the application's ``metadata``.  Numeric comparisons fall back to
    string comparison when either side is not a number.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    operator: ConditionOperator
    value: str

    def evaluate(self, snapshot: dict[str, Any]) -> bool:
        actual = snapshot.get(self.field)
        if actual is None:
            actual = snapshot.get("metadata", {}).get(self.field)
        if actual is None:
            return self.operator == ConditionOperator.NOT_EQUALS
        if isinstance(actual, Enum):
            actual = actual.value
        text = str(actual)

        if self.operator == ConditionOperator.EQUALS:
            return text == self.value
        if self.operator == ConditionOperator.NOT_EQUALS:
            return text != self.value
        if self.operator == ConditionOperator.CONTAINS:
            return self.value in text

        try:
            left: Any = float(text)
            right: Any = float(self.value)
        except ValueError:
            left, right = text, self.value
        if self.operator == ConditionOperator.GREATER_THAN:
            return left > right
        return left < right


class RoutingRule(BaseModel):
    """Maps an event to a channel and recipient type, with priority.

    Lower ``priority`` values take precedence.  For ``internal_staff`` rules,
    ``staff_role_ids`` fans out to every active staff member holding any of
    the listed roles; an empty list means the rule has no recipients.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    channel_id: str
    recipient_type: RecipientType
    priority: int = 1
    conditions: list[RoutingCondition] = []
    staff_role_ids: list[str] = []
    wait_days_before_escalation: int = 0  # 0 = no implicit escalation edge
    escalation_channel_id: str | None = None
    is_active: bool = True

    def matches(self, snapshot: dict[str, Any]) -> bool:
        """Return True when every condition holds for *snapshot*."""
        return all(c.evaluate(snapshot) for c in self.conditions)


class RoutingTarget(BaseModel):
    """A resolved (channel, recipient) pair for one event firing."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    channel_type: ChannelType
    recipient_type: RecipientType
    recipient_id: str
    recipient_name: str
    recipient_contact: str
    priority: int
    routing_rule_id: str | None = None
