"""Unit tests for ComparisonConfigurationService."""

import logging
import threading

import pytest

from response_parity.models import (
    ComparisonConfigurationOptions,
    IgnoreRule,
    SmartIgnoreRule,
)
from response_parity.presets import TIMESTAMPS
from response_parity.rule_store import ComparisonConfigurationService
from tests.conftest import make_result

pytest_plugins = ["tests.comparison_fixtures"]


class TestConstruction:
    """Tests for options applied at construction."""

    def test_defaults(self, config_service):
        config = config_service.get_current_config()
        assert config.max_differences == 100
        assert config.ignore_collection_order is False
        assert config.case_sensitive is True
        assert config.ignore_rules == ()
        assert config.smart_ignore_rules == ()

    def test_options_applied(self):
        service = ComparisonConfigurationService(
            ComparisonConfigurationOptions(
                max_differences=5,
                default_ignore_collection_order=True,
                default_ignore_string_case=True,
            )
        )
        config = service.get_current_config()
        assert config.max_differences == 5
        assert config.ignore_collection_order is True
        assert config.case_sensitive is False


class TestExactRules:
    """Tests for adding, removing and listing exact rules."""

    def test_ignore_property_adds_complete_rule(self, config_service):
        config_service.ignore_property("Order.Timestamp")
        rules = config_service.get_ignore_rules()
        assert len(rules) == 1
        assert rules[0].ignore_completely is True
        assert config_service.get_ignored_properties() == ["Order.Timestamp"]

    def test_ignored_properties_excludes_order_only_rules(self, config_service):
        config_service.add_ignore_rule(
            IgnoreRule(property_path="Items", ignore_completely=False, ignore_collection_order=True)
        )
        config_service.ignore_property("Name")
        assert config_service.get_ignored_properties() == ["Name"]

    def test_duplicates_kept_in_order(self, config_service):
        """Adding is additive; the same path can appear twice."""
        config_service.ignore_property("A")
        config_service.ignore_property("B")
        config_service.ignore_property("A")
        assert [r.property_path for r in config_service.get_ignore_rules()] == ["A", "B", "A"]

    def test_batch(self, config_service):
        config_service.add_ignore_rules_batch(IgnoreRule(property_path=p) for p in ("A", "B"))
        assert config_service.get_ignored_properties() == ["A", "B"]

    def test_remove_preserves_order_of_rest(self, config_service):
        """Removing one path keeps the others in insertion order."""
        for path in ("A", "B", "C", "B"):
            config_service.ignore_property(path)

        config_service.remove_ignored_property("B")

        assert config_service.get_ignored_properties() == ["A", "C"]

    def test_remove_absent_is_noop(self, config_service):
        config_service.ignore_property("A")
        config_service.remove_ignored_property("Missing")
        assert config_service.get_ignored_properties() == ["A"]

    def test_clear(self, config_service):
        config_service.ignore_property("A")
        config_service.clear_ignore_rules()
        assert config_service.get_ignore_rules() == []

    def test_returned_list_is_a_copy(self, config_service):
        config_service.ignore_property("A")
        config_service.get_ignore_rules().clear()
        assert len(config_service.get_ignore_rules()) == 1

    def test_add_then_remove_restores_prior_rules(self, config_service):
        """Adding a fresh path and removing it leaves the rule list as it was."""
        config_service.ignore_property("A")
        before = config_service.get_ignore_rules()

        config_service.ignore_property("Fresh.Path")
        config_service.remove_ignored_property("Fresh.Path")

        assert config_service.get_ignore_rules() == before


class TestSmartRules:
    """Tests for smart rule management and presets."""

    def test_add_and_remove(self, config_service):
        rule = SmartIgnoreRule.by_property_name("Id")
        other = SmartIgnoreRule.by_name_pattern(r".*Date")
        config_service.add_smart_ignore_rule(rule)
        config_service.add_smart_ignore_rule(other)

        config_service.remove_smart_ignore_rule(rule)

        assert config_service.get_smart_ignore_rules() == [other]

    def test_remove_absent_is_noop(self, config_service):
        config_service.remove_smart_ignore_rule(SmartIgnoreRule.by_property_name("Id"))
        assert config_service.get_smart_ignore_rules() == []

    def test_clear(self, config_service):
        config_service.add_smart_ignore_rule(SmartIgnoreRule.by_property_name("Id"))
        config_service.clear_smart_ignore_rules()
        assert config_service.get_smart_ignore_rules() == []

    def test_preset(self, config_service):
        config_service.add_smart_ignore_preset("timestamps")
        assert config_service.get_smart_ignore_rules() == list(TIMESTAMPS)

    def test_unknown_preset(self, config_service):
        with pytest.raises(ValueError, match="Available"):
            config_service.add_smart_ignore_preset("nope")

    def test_smart_removal_stops_filtering(self, config_service):
        """After removing a name rule its differences survive filtering again."""
        rule = SmartIgnoreRule.by_property_name("Timestamp")
        config_service.add_smart_ignore_rule(rule)
        result = make_result("Order.Timestamp", "Order.Total")
        assert config_service.filter_smart_ignored_differences(result).differences[0].property_path == "Order.Total"

        config_service.remove_smart_ignore_rule(rule)

        filtered = config_service.filter_smart_ignored_differences(result)
        assert [d.property_path for d in filtered.differences] == ["Order.Timestamp", "Order.Total"]


class TestGlobalSettings:
    """Tests for setters and getters of global flags."""

    def test_collection_order(self, config_service):
        config_service.set_ignore_collection_order(True)
        assert config_service.get_ignore_collection_order() is True
        assert config_service.get_current_config().ignore_collection_order is True

    def test_string_case(self, config_service):
        config_service.set_ignore_string_case(True)
        assert config_service.get_ignore_string_case() is True
        assert config_service.get_current_config().case_sensitive is False


class TestApplyConfiguredSettings:
    """Tests for the engine-facing exclusion lists."""

    def test_members_are_rule_paths_as_written(self, config_service):
        """A literal index stays literal; no wildcard form is added."""
        config_service.ignore_property("Items[0].Price")
        config_service.ignore_property("Items[*].Sku")
        config_service.ignore_property("Name")
        config_service.ignore_property("Name")
        config_service.apply_configured_settings()

        config = config_service.get_current_config()

        assert config.members_to_ignore == ("Items[0].Price", "Items[*].Sku", "Name")

    def test_collection_ordering_rule_sets_global_flag(self, config_service):
        config_service.add_smart_ignore_rule(SmartIgnoreRule.ignore_collection_ordering())
        assert config_service.get_current_config().ignore_collection_order is False

        config_service.apply_configured_settings()

        assert config_service.get_ignore_collection_order() is True
        assert config_service.get_current_config().ignore_collection_order is True

    def test_disabled_collection_ordering_rule_ignored(self, config_service):
        rule = SmartIgnoreRule.ignore_collection_ordering().model_copy(update={"enabled": False})
        config_service.add_smart_ignore_rule(rule)

        config_service.apply_configured_settings()

        assert config_service.get_ignore_collection_order() is False

    def test_functional_preset_ignores_order(self, config_service):
        config_service.add_smart_ignore_preset("functional")
        config_service.apply_configured_settings()
        assert config_service.get_current_config().ignore_collection_order is True

    def test_order_paths(self, config_service):
        config_service.add_ignore_rule(
            IgnoreRule(property_path="Tags", ignore_completely=False, ignore_collection_order=True)
        )
        config_service.apply_configured_settings()

        config = config_service.get_current_config()

        assert config.collection_order_paths == ("Tags",)
        assert config.members_to_ignore == ()

    def test_not_applied_until_called(self, config_service):
        config_service.ignore_property("Name")
        assert config_service.get_current_config().members_to_ignore == ()

    def test_removal_prunes_members(self, config_service):
        """Removing a rule drops its exclusion without a reapply."""
        config_service.ignore_property("A")
        config_service.ignore_property("B")
        config_service.apply_configured_settings()

        config_service.remove_ignored_property("A")

        assert config_service.get_current_config().members_to_ignore == ("B",)

    def test_clear_prunes_members(self, config_service):
        config_service.ignore_property("A")
        config_service.apply_configured_settings()
        config_service.clear_ignore_rules()
        assert config_service.get_current_config().members_to_ignore == ()

    def test_global_order_conflict_warns(self, config_service, caplog):
        config_service.set_ignore_collection_order(True)
        config_service.add_ignore_rule(
            IgnoreRule(property_path="Tags", ignore_completely=False, ignore_collection_order=True)
        )
        with caplog.at_level(logging.WARNING, logger="response_parity.rule_store"):
            config_service.apply_configured_settings()
        assert "no additional effect" in caplog.text


class TestSnapshots:
    """Tests for snapshot isolation and filtering through the service."""

    def test_snapshot_unaffected_by_later_edits(self, config_service):
        config_service.ignore_property("A")
        snapshot = config_service.get_current_config()

        config_service.ignore_property("B")
        config_service.clear_smart_ignore_rules()

        assert [r.property_path for r in snapshot.ignore_rules] == ["A"]

    def test_filter_differences(self, config_service):
        config_service.ignore_property("Order.Total")
        config_service.add_smart_ignore_preset("timestamps")

        outcome = config_service.filter_differences(
            make_result("Order.Total", "Order.CreatedDate", "Order.Name")
        )

        assert [d.property_path for d in outcome.result.differences] == ["Order.Name"]
        assert outcome.suppressed_count == 2

    def test_exact_filter_through_service(self, config_service):
        config_service.ignore_property("A")
        filtered = config_service.filter_ignored_differences(make_result("A", "B"))
        assert [d.property_path for d in filtered.differences] == ["B"]

    def test_concurrent_mutation(self, config_service):
        """Parallel writers never lose rules."""

        def add_many(prefix: str) -> None:
            for i in range(200):
                config_service.ignore_property(f"{prefix}{i}")

        threads = [threading.Thread(target=add_many, args=(p,)) for p in "ABCD"]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(config_service.get_ignore_rules()) == 800


class TestNormalizeThroughService:
    """normalize_property_values delegates with the service's registry."""

    def test_dict_body(self, config_service):
        body = {"Order": {"Timestamp": "2024-01-01T00:00:00Z", "Total": 5}}
        count = config_service.normalize_property_values(body, ["Timestamp"])
        assert count == 1
        assert body["Order"]["Timestamp"] == ""
