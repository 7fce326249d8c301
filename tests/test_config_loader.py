"""Tests for loading comparison rules files."""

import json
from pathlib import Path

import pytest

from response_parity.config_loader import (
    ConfigError,
    build_configuration_service,
    load_comparison_rules,
)
from response_parity.models import ComparisonRulesFile, SmartIgnoreMode
from response_parity.presets import ID_FIELDS, TIMESTAMPS

YAML_RULES = """\
version: "1"
description: Staging vs production
options:
  max_differences: 250
  default_ignore_string_case: true
ignore_rules:
  - property_path: Order.Timestamp
  - property_path: Items[*].Price
  - property_path: Tags
    ignore_completely: false
    ignore_collection_order: true
smart_ignore_rules:
  - mode: name_pattern
    value: ".*Etag"
presets:
  - timestamps
"""


def write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadComparisonRules:
    """Tests for load_comparison_rules."""

    def test_yaml(self, tmp_path):
        rules = load_comparison_rules(write(tmp_path, "rules.yaml", YAML_RULES))

        assert rules.options.max_differences == 250
        assert [r.property_path for r in rules.ignore_rules] == ["Order.Timestamp", "Items[*].Price", "Tags"]
        assert rules.ignore_rules[2].ignore_collection_order is True
        assert rules.smart_ignore_rules[0].mode == SmartIgnoreMode.NAME_PATTERN
        assert rules.presets == ["timestamps"]

    def test_yml_suffix(self, tmp_path):
        rules = load_comparison_rules(write(tmp_path, "rules.yml", "presets: [id_fields]\n"))
        assert rules.presets == ["id_fields"]

    def test_json(self, tmp_path):
        content = json.dumps({"ignore_rules": [{"property_path": "Id"}], "presets": ["metadata"]})
        rules = load_comparison_rules(write(tmp_path, "rules.json", content))
        assert rules.ignore_rules[0].property_path == "Id"

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VOLATILE_FIELD", "Response.TraceId")
        path = write(tmp_path, "rules.yaml", "ignore_rules:\n  - property_path: ${VOLATILE_FIELD}\n")

        rules = load_comparison_rules(path)

        assert rules.ignore_rules[0].property_path == "Response.TraceId"

    def test_unset_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        path = write(tmp_path, "rules.yaml", "ignore_rules:\n  - property_path: ${NOT_SET_ANYWHERE}\n")

        with pytest.raises(ConfigError, match="NOT_SET_ANYWHERE"):
            load_comparison_rules(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_comparison_rules(tmp_path / "absent.yaml")

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ConfigError, match="Unsupported"):
            load_comparison_rules(write(tmp_path, "rules.toml", "x = 1"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_comparison_rules(write(tmp_path, "rules.yaml", "ignore_rules: [unclosed"))

    def test_invalid_json(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_comparison_rules(write(tmp_path, "rules.json", "{not json"))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="mapping"):
            load_comparison_rules(write(tmp_path, "rules.yaml", "- just\n- a list\n"))

    def test_unknown_key(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid rules structure"):
            load_comparison_rules(write(tmp_path, "rules.yaml", "ignore_rulez: []\n"))

    def test_invalid_pattern(self, tmp_path):
        """A smart rule whose pattern does not compile is a configuration error."""
        content = "smart_ignore_rules:\n  - mode: path_pattern\n    value: \"Items(\"\n"
        with pytest.raises(ConfigError, match="Invalid rules structure"):
            load_comparison_rules(write(tmp_path, "rules.yaml", content))


class TestBuildConfigurationService:
    """Tests for build_configuration_service."""

    def test_populates_service(self, tmp_path):
        rules = load_comparison_rules(write(tmp_path, "rules.yaml", YAML_RULES))

        service = build_configuration_service(rules)
        config = service.get_current_config()

        assert config.max_differences == 250
        assert config.case_sensitive is False
        assert service.get_ignored_properties() == ["Order.Timestamp", "Items[*].Price"]
        assert config.smart_ignore_rules[: len(TIMESTAMPS)] == TIMESTAMPS
        assert config.smart_ignore_rules[-1].value == ".*Etag"

    def test_settings_applied(self, tmp_path):
        rules = load_comparison_rules(write(tmp_path, "rules.yaml", YAML_RULES))

        config = build_configuration_service(rules).get_current_config()

        assert config.members_to_ignore == ("Order.Timestamp", "Items[*].Price")
        assert config.collection_order_paths == ("Tags",)

    def test_presets_in_file_order(self):
        rules = ComparisonRulesFile(presets=["id_fields", "timestamps"])
        config = build_configuration_service(rules).get_current_config()
        assert config.smart_ignore_rules == ID_FIELDS + TIMESTAMPS

    def test_unknown_preset(self):
        with pytest.raises(ConfigError, match="Unknown smart ignore preset"):
            build_configuration_service(ComparisonRulesFile(presets=["bogus"]))


class TestUnreadableRulesFile:
    """Files that exist but cannot be read or decoded."""

    def test_yaml_not_utf8(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_bytes(b"ignore_rules:\n  - property_path: \xff\xfe\n")

        with pytest.raises(ConfigError, match="Cannot read rules file"):
            load_comparison_rules(path)

    def test_json_not_utf8(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_bytes(b'{"presets": ["\xff"]}')

        with pytest.raises(ConfigError, match="Cannot read rules file"):
            load_comparison_rules(path)

    def test_directory_named_like_rules_file(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.mkdir()

        with pytest.raises(ConfigError, match="Cannot read rules file"):
            load_comparison_rules(path)
