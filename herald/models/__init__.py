"""Herald data models — all Pydantic v2, all frozen (immutable)."""

from herald.models.applications import (
    TERMINAL_APPLICATION_STATUSES,
    Application,
    ApplicationStatus,
)
from herald.models.channels import Channel, ChannelType
from herald.models.escalation import EscalationRule, EscalationWatch, WatchState
from herald.models.events import EventCategory, EventSeverity, OnboardingEvent
from herald.models.messages import (
    ESCALATION_ELIGIBLE_STATUSES,
    RESPONSE_STATUSES,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    MessageLog,
    MessageStatus,
    SendReceipt,
)
from herald.models.routing import (
    ConditionOperator,
    RecipientType,
    RoutingCondition,
    RoutingRule,
    RoutingTarget,
)
from herald.models.staff import RoleNotificationConfig, StaffMember, StaffRole
from herald.models.templates import MessageTemplate, RenderedContent, extract_variables

__all__ = [
    # channels
    "Channel",
    "ChannelType",
    # events
    "EventCategory",
    "EventSeverity",
    "OnboardingEvent",
    # routing
    "ConditionOperator",
    "RecipientType",
    "RoutingCondition",
    "RoutingRule",
    "RoutingTarget",
    # escalation
    "EscalationRule",
    "EscalationWatch",
    "WatchState",
    # templates
    "MessageTemplate",
    "RenderedContent",
    "extract_variables",
    # staff
    "RoleNotificationConfig",
    "StaffMember",
    "StaffRole",
    # applications
    "Application",
    "ApplicationStatus",
    "TERMINAL_APPLICATION_STATUSES",
    # messages
    "MessageLog",
    "MessageStatus",
    "SendReceipt",
    "VALID_TRANSITIONS",
    "TERMINAL_STATUSES",
    "RESPONSE_STATUSES",
    "ESCALATION_ELIGIBLE_STATUSES",
]
