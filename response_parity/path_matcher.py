"""Property Path Matcher - Decides whether a difference matches an ignore rule.

Exact rules compare against the canonical rendered path segment by segment. A
[*] in the rule stands for any single collection index at that position; every
other part of the rule, literal indices included, must match exactly. Smart
rules look at the last path segment (name and name-pattern modes), the runtime
type of the differing values (type mode) or the whole rendered path
(path-pattern mode). A difference is ignored when ANY rule of either kind
matches.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

from response_parity.models import (
    ComparisonConfig,
    Difference,
    IgnoreRule,
    SmartIgnoreMode,
    SmartIgnoreRule,
    compile_pattern,
)

WILDCARD_INDEX = "[*]"


@lru_cache(maxsize=512)
def _wildcard_path_pattern(rule_path: str) -> re.Pattern[str]:
    """Compile a rule path so each [*] matches exactly one numeric index."""
    parts = [re.escape(part) for part in rule_path.split(WILDCARD_INDEX)]
    return re.compile(r"\[\d+\]".join(parts))


def path_matches(rule_path: str, property_path: str) -> bool:
    """Check whether a rule path addresses a rendered property path.

    Items[*].Tags[0] matches Items[2].Tags[0] but not Items[2].Tags[1].
    """
    if rule_path == property_path:
        return True
    if WILDCARD_INDEX not in rule_path:
        return False
    return _wildcard_path_pattern(rule_path).fullmatch(property_path) is not None


def matches_ignore_rule(difference: Difference, rule: IgnoreRule) -> bool:
    """Check whether an exact rule's path addresses this difference.

    Overrides on the rule (ignore_completely and friends) are not consulted
    here; callers decide which rules take part in filtering.
    """
    return path_matches(rule.property_path, difference.property_path)


def matches_smart_rule(difference: Difference, rule: SmartIgnoreRule) -> bool:
    """Check whether a smart rule matches this difference.

    Args:
        difference: Difference to test.
        rule: Smart ignore rule. Disabled rules never match.

    Returns:
        True if the rule suppresses the difference.

    Raises:
        ValueError: If the rule carries an unknown mode.
    """
    if not rule.enabled:
        return False

    if rule.mode == SmartIgnoreMode.PROPERTY_NAME:
        return difference.property_name.casefold() == rule.value.casefold()

    if rule.mode == SmartIgnoreMode.NAME_PATTERN:
        return compile_pattern(rule.value).fullmatch(difference.property_name) is not None

    if rule.mode == SmartIgnoreMode.PATH_PATTERN:
        return compile_pattern(rule.value).fullmatch(difference.property_path) is not None

    if rule.mode == SmartIgnoreMode.PROPERTY_TYPE:
        return _matches_value_type(difference, rule.value)

    if rule.mode == SmartIgnoreMode.COLLECTION_ORDERING:
        # Applied to the configuration snapshot, never to single differences
        return False

    # Unreachable while SmartIgnoreMode stays a closed enum
    raise ValueError(f"Unknown smart ignore mode: {rule.mode}")


def _matches_value_type(difference: Difference, type_name: str) -> bool:
    """Match the runtime type of the side-A value, or side B when A is missing.

    Both the bare class name (datetime) and the qualified name
    (datetime.datetime) are accepted, ignoring case.
    """
    value = difference.value_a if difference.value_a is not None else difference.value_b
    if value is None:
        return False
    cls = type(value)
    wanted = type_name.casefold()
    return wanted in (cls.__name__.casefold(), f"{cls.__module__}.{cls.__qualname__}".casefold())


def matches_any_ignore_rule(difference: Difference, rules: Iterable[IgnoreRule]) -> bool:
    return any(rule.ignore_completely and matches_ignore_rule(difference, rule) for rule in rules)


def matches_any_smart_rule(difference: Difference, rules: Iterable[SmartIgnoreRule]) -> bool:
    return any(matches_smart_rule(difference, rule) for rule in rules)


def is_ignored(difference: Difference, config: ComparisonConfig) -> bool:
    """True if any exact rule OR any smart rule in the snapshot matches."""
    return matches_any_ignore_rule(difference, config.ignore_rules) or matches_any_smart_rule(
        difference, config.smart_ignore_rules
    )
