"""Tests for ConfigurationService — validated catalog writes."""

from __future__ import annotations

import pytest

from herald.admin import ConfigurationService, has_cycle
from herald.core.errors import ConfigurationError
from herald.models.events import OnboardingEvent
from herald.models.routing import RecipientType
from herald.models.staff import RoleNotificationConfig, StaffRole


@pytest.fixture
def service(catalog, clock) -> ConfigurationService:
    return ConfigurationService(catalog, clock=clock)


class TestHasCycle:
    def test_chain_is_acyclic(self):
        assert not has_cycle([("email", "sms"), ("sms", "whatsapp"), ("whatsapp", "teams")])

    def test_loop_detected(self):
        assert has_cycle([("email", "sms"), ("sms", "whatsapp"), ("whatsapp", "email")])

    def test_self_loop_detected(self):
        assert has_cycle([("email", "email")])

    def test_empty_graph(self):
        assert not has_cycle([])


class TestChannels:
    def test_create_and_update(self, service, make_channel):
        service.create_channel(make_channel("email", id="ch_email_eu", name="EU Email"))
        updated = service.update_channel("ch_email_eu", is_active=False)
        assert not updated.is_active
        assert service.get_channel("ch_email_eu") == updated

    def test_duplicate_id_rejected(self, service, make_channel):
        with pytest.raises(ConfigurationError, match="already exists"):
            service.create_channel(make_channel("email"))

    def test_unknown_field_rejected(self, service):
        with pytest.raises(ConfigurationError, match="Unknown field"):
            service.update_channel("ch_email", colour="red")

    def test_id_is_immutable(self, service):
        with pytest.raises(ConfigurationError, match="immutable"):
            service.update_channel("ch_email", id="ch_other")

    def test_referenced_channel_cannot_be_deleted(self, service):
        with pytest.raises(ConfigurationError, match="referenced"):
            service.delete_channel("ch_sms")

    def test_unreferenced_channel_deleted(self, service, make_channel):
        service.create_channel(make_channel("sms", id="ch_sms_backup"))
        assert service.delete_channel("ch_sms_backup")
        assert service.get_channel("ch_sms_backup") is None


class TestEvents:
    def test_code_must_be_unique(self, service):
        with pytest.raises(ConfigurationError, match="already used"):
            service.create_event(OnboardingEvent(id="evt_new", code="DOCUMENTS_PENDING"))

    def test_code_is_immutable(self, service):
        with pytest.raises(ConfigurationError, match="immutable"):
            service.update_event("evt_docs_pending", code="DOCS")

    def test_other_fields_update(self, service):
        event = service.update_event("evt_completed", is_active=False, name="Done")
        assert not event.is_active
        assert event.code == "ONBOARDING_COMPLETED"

    def test_referenced_event_cannot_be_deleted(self, service):
        with pytest.raises(ConfigurationError, match="referenced"):
            service.delete_event("evt_docs_pending")

    def test_unreferenced_event_deleted(self, service):
        assert service.delete_event("evt_verification_started")
        assert service.get_event("evt_verification_started") is None


class TestRoutingRules:
    def test_create_valid_rule(self, service, make_routing_rule):
        rule = service.create_routing_rule(
            make_routing_rule("rr_9", "evt_rejected", "ch_email")
        )
        assert service.list_routing_rules("evt_rejected") == [rule]

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"event_id": "evt_missing"}, "Unknown event"),
            ({"channel_id": "ch_fax"}, "Unknown channel"),
            (
                {"recipient_type": RecipientType.INTERNAL_STAFF, "staff_role_ids": ["role_x"]},
                "Unknown role",
            ),
            ({"escalation_channel_id": "ch_email"}, "to itself"),
            ({"wait_days_before_escalation": -1}, ">= 0"),
        ],
    )
    def test_invalid_rules_rejected(self, service, make_routing_rule, overrides, message):
        defaults = {"event_id": "evt_rejected", "channel_id": "ch_email"}
        defaults.update(overrides)
        with pytest.raises(ConfigurationError, match=message):
            service.create_routing_rule(make_routing_rule("rr_9", **defaults))

    def test_must_agree_with_escalation_rule(self, service):
        with pytest.raises(ConfigurationError, match="esc_1"):
            service.update_routing_rule("rr_3", escalation_channel_id="ch_whatsapp")

    def test_update_keeps_id(self, service):
        rule = service.update_routing_rule("rr_7", priority=5)
        assert rule.priority == 5
        with pytest.raises(ConfigurationError, match="immutable"):
            service.update_routing_rule("rr_7", id="rr_77")

    def test_staff_rule_without_roles_is_accepted(self, service, make_routing_rule):
        rule = service.create_routing_rule(
            make_routing_rule(
                "rr_9", "evt_rejected", "ch_teams", recipient_type=RecipientType.INTERNAL_STAFF
            )
        )
        assert rule.staff_role_ids == []
        assert service.get_routing_rule("rr_9") == rule

    def test_invalid_update_is_configuration_error(self, service):
        with pytest.raises(ConfigurationError, match="Invalid RoutingRule"):
            service.update_routing_rule("rr_7", priority="urgent")


class TestEscalationRules:
    def test_second_rule_from_same_channel_rejected(self, service, make_escalation_rule):
        with pytest.raises(ConfigurationError, match="already escalates"):
            service.create_escalation_rule(
                make_escalation_rule(
                    "esc_9", "evt_docs_pending", "ch_email", "ch_whatsapp"
                )
            )

    def test_cycle_rejected(self, service, make_escalation_rule):
        with pytest.raises(ConfigurationError, match="cycle"):
            service.create_escalation_rule(
                make_escalation_rule("esc_9", "evt_docs_pending", "ch_teams", "ch_email")
            )

    def test_self_edge_rejected(self, service, make_escalation_rule):
        with pytest.raises(ConfigurationError, match="to itself"):
            service.create_escalation_rule(
                make_escalation_rule("esc_9", "evt_rejected", "ch_email", "ch_email")
            )

    def test_must_agree_with_routing_rule(self, service, make_escalation_rule, catalog):
        catalog.delete_escalation_rule("esc_4")
        with pytest.raises(ConfigurationError, match="rr_5"):
            service.create_escalation_rule(
                make_escalation_rule("esc_9", "evt_reminder_3day", "ch_email", "ch_sms")
            )

    def test_inactive_rule_skips_graph_checks(self, service, make_escalation_rule):
        rule = service.create_escalation_rule(
            make_escalation_rule(
                "esc_9", "evt_docs_pending", "ch_email", "ch_whatsapp", is_active=False
            )
        )
        assert service.get_escalation_rule("esc_9") == rule

    def test_invalid_update_is_configuration_error(self, service):
        with pytest.raises(ConfigurationError, match="max_attempts"):
            service.update_escalation_rule("esc_1", max_attempts=0)

    def test_valid_update(self, service):
        rule = service.update_escalation_rule("esc_1", wait_days=5)
        assert rule.wait_days == 5


class TestTemplates:
    def test_create_stamps_and_derives_variables(self, service, make_template, clock):
        template = service.create_template(
            make_template("tpl_10", "evt_rejected", "ch_email", body="Sorry {{applicant_name}}")
        )
        assert template.created_at == clock()
        assert template.updated_at == clock()
        assert template.variables == ["applicant_name"]

    def test_update_restamps(self, service, clock):
        clock.advance(1)
        template = service.update_template("tpl_4", body="Hi {{applicant_name}} {{deadline}}")
        assert template.updated_at == clock()
        assert template.variables == ["applicant_name", "deadline"]

    def test_unknown_event_rejected(self, service, make_template):
        with pytest.raises(ConfigurationError, match="Unknown event"):
            service.create_template(make_template("tpl_10", "evt_missing"))

    def test_invalid_update_is_configuration_error(self, service):
        with pytest.raises(ConfigurationError, match="Invalid MessageTemplate"):
            service.update_template("tpl_1", recipient_type="robot")


class TestStaff:
    def test_role_in_use_cannot_be_deleted(self, service):
        with pytest.raises(ConfigurationError, match="referenced"):
            service.delete_role("role_reviewer")

    def test_staff_requires_known_roles(self, service, make_staff):
        with pytest.raises(ConfigurationError, match="Unknown role"):
            service.create_staff_member(make_staff("staff_9", role_ids=["role_x"]))

    def test_staff_lifecycle(self, service, make_staff):
        service.create_role(StaffRole(id="role_audit", name="Auditor"))
        service.create_staff_member(make_staff("staff_9", role_ids=["role_audit"]))
        updated = service.update_staff_member("staff_9", is_active=False)
        assert not updated.is_active
        assert service.delete_staff_member("staff_9")
        assert service.delete_role("role_audit")

    def test_role_id_is_immutable(self, service):
        with pytest.raises(ConfigurationError, match="immutable"):
            service.update_role("role_support", id="role_helpdesk")
        assert service.catalog.get_role("role_helpdesk") is None

    def test_staff_id_is_immutable(self, service):
        with pytest.raises(ConfigurationError, match="immutable"):
            service.update_staff_member("staff_1", id="staff_99")
        assert service.catalog.get_staff_member("staff_99") is None
        assert len(service.list_staff()) == 4


class TestRoleNotifications:
    def test_roles_are_notified_by_default(self, service):
        assert service.is_role_notified("role_compliance", "evt_app_submitted")

    def test_switch_off_updates_existing_config(self, service):
        config = service.set_role_notification("role_reviewer", "evt_app_submitted", False)
        assert config.id == "rnc_1"
        assert not config.is_enabled
        assert not service.is_role_notified("role_reviewer", "evt_app_submitted")
        assert len(service.list_role_notifications("evt_app_submitted")) == 1

    def test_switch_creates_missing_config(self, service):
        config = service.set_role_notification("role_support", "evt_rejected", False)
        assert config.id.startswith("rnc_")
        assert service.list_role_notifications("evt_rejected") == [config]

    def test_unknown_references_rejected(self, service):
        with pytest.raises(ConfigurationError, match="Unknown role"):
            service.set_role_notification("role_x", "evt_rejected", True)
        with pytest.raises(ConfigurationError, match="Unknown event"):
            service.set_role_notification("role_support", "evt_missing", True)

    def test_duplicate_pair_rejected(self, service):
        with pytest.raises(ConfigurationError, match="rnc_1"):
            service.create_role_notification(
                RoleNotificationConfig(role_id="role_reviewer", event_id="evt_app_submitted")
            )

    def test_deleting_event_drops_its_switches(self, service):
        assert service.delete_event("evt_verification_started")
        assert service.list_role_notifications("evt_verification_started") == []
