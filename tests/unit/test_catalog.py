"""Tests for catalog loading and export."""

from __future__ import annotations

import json

import pytest

from herald.catalog import catalog_from_dict, dump_catalog, load_catalog, load_demo_catalog
from herald.core.coordinator import EventTriggerCoordinator
from herald.core.errors import ConfigurationError
from herald.store.memory import InMemoryMessageLogStore


class TestDemoCatalog:
    def test_counts(self, catalog):
        assert len(catalog.list_channels()) == 4
        assert len(catalog.list_events()) == 11
        assert len(catalog.list_roles()) == 4
        assert len(catalog.list_staff()) == 4
        assert len(catalog.list_role_notifications()) == 5
        assert len(catalog.list_routing_rules()) == 8
        assert len(catalog.list_escalation_rules()) == 5
        assert len(catalog.list_templates()) == 9
        assert len(catalog.list_applications()) == 6

    def test_templates_carry_derived_variables(self, catalog):
        assert catalog.get_template("tpl_3").variables == [
            "applicant_name",
            "application_id",
            "document_list",
            "deadline",
        ]

    def test_each_load_is_independent(self):
        first = load_demo_catalog()
        first.delete_template("tpl_1")
        assert load_demo_catalog().get_template("tpl_1") is not None


class TestCatalogFiles:
    def test_dump_then_load(self, catalog, tmp_path):
        path = tmp_path / "out" / "catalog.json"
        dump_catalog(catalog, path)
        loaded = load_catalog(path)
        assert loaded.get_routing_rule("rr_3") == catalog.get_routing_rule("rr_3")
        assert loaded.get_application("app_001") == catalog.get_application("app_001")
        assert len(loaded.list_templates()) == len(catalog.list_templates())
        assert loaded.list_role_notifications() == catalog.list_role_notifications()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_catalog(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_catalog(path)


class TestCatalogFromDict:
    def test_unknown_section(self):
        with pytest.raises(ConfigurationError, match="Unknown catalog section"):
            catalog_from_dict({"widgets": []})

    def test_malformed_entity(self):
        with pytest.raises(ConfigurationError, match="Invalid entry in channels"):
            catalog_from_dict({"channels": [{"id": "ch_x", "type": "pigeon", "name": "X"}]})

    def test_dangling_reference(self):
        data = {
            "channels": [{"id": "ch_email", "type": "email", "name": "Email"}],
            "routing_rules": [
                {
                    "id": "rr_1",
                    "event_id": "evt_missing",
                    "channel_id": "ch_email",
                    "recipient_type": "customer",
                }
            ],
        }
        with pytest.raises(ConfigurationError, match="Unknown event"):
            catalog_from_dict(data)

    def test_cyclic_escalation_graph(self):
        data = {
            "channels": [
                {"id": "ch_email", "type": "email", "name": "Email"},
                {"id": "ch_sms", "type": "sms", "name": "SMS"},
            ],
            "events": [{"id": "evt_a", "code": "A"}],
            "escalation_rules": [
                {"id": "esc_1", "event_id": "evt_a", "from_channel_id": "ch_email", "to_channel_id": "ch_sms"},
                {"id": "esc_2", "event_id": "evt_a", "from_channel_id": "ch_sms", "to_channel_id": "ch_email"},
            ],
        }
        with pytest.raises(ConfigurationError, match="cycle"):
            catalog_from_dict(data)

    def test_empty_catalog(self):
        catalog = catalog_from_dict(json.loads("{}"))
        assert catalog.list_events() == []

    def test_staff_rule_without_roles_loads_and_is_ignored(
        self, catalog, tmp_path, settings, clock
    ):
        path = tmp_path / "catalog.json"
        dump_catalog(catalog, path)
        data = json.loads(path.read_text(encoding="utf-8"))
        data["routing_rules"].append(
            {
                "id": "rr_empty",
                "event_id": "evt_docs_pending",
                "channel_id": "ch_teams",
                "recipient_type": "internal_staff",
                "staff_role_ids": [],
            }
        )

        loaded = catalog_from_dict(data)
        assert loaded.get_routing_rule("rr_empty") is not None

        coordinator = EventTriggerCoordinator(
            loaded, loaded, loaded, InMemoryMessageLogStore(), settings=settings, clock=clock
        )
        logs = coordinator.trigger("evt_docs_pending", "app_001")
        assert sorted(m.channel_id for m in logs) == ["ch_email", "ch_sms"]
        assert all(m.routing_rule_id != "rr_empty" for m in logs)
