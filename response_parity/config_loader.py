"""Config Loader - Loads comparison rules files and builds the rule store.

Rules files are YAML (with ${ENV_VAR} substitution) or JSON, chosen by file
extension. Every failure surfaces as ConfigError.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from response_parity.models import ComparisonRulesFile
from response_parity.normalizer import AccessorRegistry
from response_parity.rule_store import ComparisonConfigurationService

logger = logging.getLogger(__name__)

YAML_SUFFIXES = frozenset({".yaml", ".yml"})
JSON_SUFFIXES = frozenset({".json"})

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ConfigError(Exception):
    """Raised when configuration loading fails."""


def load_comparison_rules(rules_path: Path) -> ComparisonRulesFile:
    """Load a comparison rules file from YAML or JSON."""
    rules_path = Path(rules_path)
    if not rules_path.exists():
        raise ConfigError(f"Comparison rules file not found: {rules_path}")

    suffix = rules_path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        raw_rules = _load_yaml(rules_path)
    elif suffix in JSON_SUFFIXES:
        raw_rules = _load_json(rules_path)
    else:
        raise ConfigError(
            f"Unsupported rules file type '{rules_path.suffix}': expected .yaml, .yml or .json"
        )

    if not isinstance(raw_rules, dict):
        raise ConfigError("Rules file must contain a mapping at the top level")

    try:
        rules = ComparisonRulesFile.model_validate(raw_rules)
    except Exception as e:
        raise ConfigError(f"Invalid rules structure: {e}") from e

    logger.info(
        "Loaded comparison rules from %s: %d ignore rules, %d smart rules, %d presets",
        rules_path,
        len(rules.ignore_rules),
        len(rules.smart_ignore_rules),
        len(rules.presets),
    )
    return rules


def build_configuration_service(
    rules_file: ComparisonRulesFile,
    registry: AccessorRegistry | None = None,
) -> ComparisonConfigurationService:
    """Create a configuration service populated from a rules file.

    Exact rules are added in one batch, then presets in file order, then
    explicit smart rules; engine settings are applied last.
    """
    service = ComparisonConfigurationService(rules_file.options, registry=registry)
    service.add_ignore_rules_batch(rules_file.ignore_rules)

    for preset in rules_file.presets:
        try:
            service.add_smart_ignore_preset(preset)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    for rule in rules_file.smart_ignore_rules:
        service.add_smart_ignore_rule(rule)

    service.apply_configured_settings()
    return service


def _load_yaml(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in rules file: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read rules file {path}: {e}") from e
    return _substitute_env_vars(raw)


def _load_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in rules file: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read rules file {path}: {e}") from e


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)
