"""Routing Resolver — turns an event firing into ordered delivery targets.

Targets are sorted by rule priority (ascending) with a stable sort, so
rules of equal priority keep their insertion order.  An event with no
active, matching rule resolves to an empty list: nothing is due, which is
a normal outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from herald.core.errors import ConfigurationError, UnresolvableRecipientError
from herald.models.applications import Application
from herald.models.channels import Channel, ChannelType
from herald.models.routing import RecipientType, RoutingRule, RoutingTarget
from herald.models.staff import StaffMember
from herald.store.base import ApplicationStore, ConfigStore, StaffStore

logger = logging.getLogger(__name__)


def fan_out_staff(
    role_ids: Iterable[str],
    roster: Iterable[StaffMember],
    channel_type: ChannelType,
    *,
    disabled_roles: Iterable[str] = (),
) -> list[tuple[StaffMember, str]]:
    """Expand roles into ``(staff member, contact)`` pairs for one channel.

    Pure function.  Selects every active member holding any of *role_ids*
    who opted into *channel_type*, in roster order, each member at most
    once even when they hold several listed roles.  Roles in
    *disabled_roles* are dropped before matching.
    """
    wanted = set(role_ids) - set(disabled_roles)
    if not wanted:
        return []

    recipients: list[tuple[StaffMember, str]] = []
    seen: set[str] = set()
    for member in roster:
        if member.id in seen or not member.is_active:
            continue
        if wanted.isdisjoint(member.role_ids):
            continue
        contact = member.contact_for(channel_type)
        if not contact:
            continue
        seen.add(member.id)
        recipients.append((member, contact))
    return recipients


def customer_target(
    rule: RoutingRule, channel: Channel, application: Application
) -> RoutingTarget:
    """Build the single customer target for *rule*.

    Raises
    ------
    UnresolvableRecipientError
        If the applicant has no address for the channel type.
    """
    contact = application.contact_for(channel.type)
    if not contact:
        raise UnresolvableRecipientError(
            f"Application {application.id} has no {channel.type.value} contact "
            f"(rule {rule.id})"
        )
    return RoutingTarget(
        channel_id=channel.id,
        channel_type=channel.type,
        recipient_type=RecipientType.CUSTOMER,
        recipient_id=application.id,
        recipient_name=application.applicant_name,
        recipient_contact=contact,
        priority=rule.priority,
        routing_rule_id=rule.id,
    )


class RoutingResolver:
    """Computes routing targets from active routing rules.

    Parameters
    ----------
    config_store:
        Source of routing rules and channels.
    applications:
        Read access to application contact details.
    staff:
        Read access to the staff roster.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        applications: ApplicationStore,
        staff: StaffStore,
    ) -> None:
        self._config = config_store
        self._applications = applications
        self._staff = staff

    def active_rules(self, event_id: str, application: Application) -> list[RoutingRule]:
        """Active rules for the event whose conditions hold, priority-sorted."""
        snapshot = application.model_dump()
        rules = [
            r
            for r in self._config.list_routing_rules(event_id)
            if r.is_active and r.matches(snapshot)
        ]
        return sorted(rules, key=lambda r: r.priority)

    def resolve_targets(self, event_id: str, application_id: str) -> list[RoutingTarget]:
        """Return the ordered ``RoutingTarget`` list for one event firing.

        A rule whose channel is missing or inactive, or whose customer has
        no address on the channel, is logged and skipped; it never aborts
        the remaining rules.

        Raises
        ------
        ConfigurationError
            If the application does not exist.
        """
        application = self._applications.get_application(application_id)
        if application is None:
            raise ConfigurationError(f"Unknown application: {application_id}")

        targets: list[RoutingTarget] = []
        roster: list[StaffMember] | None = None
        disabled_roles: set[str] = set()

        for rule in self.active_rules(event_id, application):
            channel = self._config.get_channel(rule.channel_id)
            if channel is None or not channel.is_active:
                logger.info(
                    "Rule %s skipped: channel %s is missing or inactive",
                    rule.id,
                    rule.channel_id,
                )
                continue

            if rule.recipient_type == RecipientType.CUSTOMER:
                try:
                    targets.append(customer_target(rule, channel, application))
                except UnresolvableRecipientError as exc:
                    logger.error("Rule %s skipped: %s", rule.id, exc)
                continue

            if not rule.staff_role_ids:
                logger.debug("Rule %s has no staff roles; no recipients", rule.id)
                continue

            if roster is None:
                roster = self._staff.list_staff()
                disabled_roles = {
                    c.role_id
                    for c in self._staff.list_role_notifications(event_id)
                    if not c.is_enabled
                }
            for member, contact in fan_out_staff(
                rule.staff_role_ids, roster, channel.type, disabled_roles=disabled_roles
            ):
                targets.append(
                    RoutingTarget(
                        channel_id=channel.id,
                        channel_type=channel.type,
                        recipient_type=RecipientType.INTERNAL_STAFF,
                        recipient_id=member.id,
                        recipient_name=member.name,
                        recipient_contact=contact,
                        priority=rule.priority,
                        routing_rule_id=rule.id,
                    )
                )

        logger.debug(
            "Resolved %d target(s) for event=%s application=%s",
            len(targets),
            event_id,
            application_id,
        )
        return targets
