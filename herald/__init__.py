"""Herald: onboarding notifications with multi-channel escalation.

Given an onboarding event firing on an application, Herald decides which
channels and recipients get a message, renders the template for each,
records every send in an auditable message log, and escalates unanswered
messages to fallback channels once their wait window elapses.
"""

__version__ = "0.1.0"
__description__ = "Onboarding messaging hub with routing and channel escalation"

from herald.core.coordinator import EventTriggerCoordinator, TriggerReport
from herald.catalog import load_catalog, load_demo_catalog
from herald.monitor.projection import MessageHistoryProjection
from herald.cli.app import app as cli

__all__ = [
    "EventTriggerCoordinator",
    "TriggerReport",
    "MessageHistoryProjection",
    "load_catalog",
    "load_demo_catalog",
    "cli",
    "__version__",
]
