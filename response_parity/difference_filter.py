"""Difference Filter - Removes ignored differences from a comparison result.

Every function here is pure: it reads a configuration snapshot and an input
result and returns a new result, never mutating the input. With no rules or no
differences the input result itself is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from response_parity.models import ComparisonConfig, ComparisonResult
from response_parity.path_matcher import matches_any_ignore_rule, matches_any_smart_rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterOutcome:
    """Filtered result plus the number of differences the rules suppressed."""

    result: ComparisonResult
    suppressed_count: int


def filter_ignored_differences(result: ComparisonResult, config: ComparisonConfig) -> ComparisonResult:
    """Drop differences matched by any exact ignore rule in the snapshot."""
    rules = tuple(rule for rule in config.ignore_rules if rule.ignore_completely)
    if not rules or not result.differences:
        return result

    kept = []
    for difference in result.differences:
        if matches_any_ignore_rule(difference, rules):
            logger.debug("Ignored difference at %s (exact rule)", difference.property_path)
            continue
        kept.append(difference)

    return result.model_copy(update={"differences": tuple(kept)})


def filter_smart_ignored_differences(
    result: ComparisonResult, config: ComparisonConfig
) -> ComparisonResult:
    """Drop differences matched by any enabled smart ignore rule in the snapshot."""
    rules = tuple(rule for rule in config.smart_ignore_rules if rule.enabled)
    if not rules or not result.differences:
        return result

    kept = []
    for difference in result.differences:
        if matches_any_smart_rule(difference, rules):
            logger.debug("Ignored difference at %s (smart rule)", difference.property_path)
            continue
        kept.append(difference)

    return result.model_copy(update={"differences": tuple(kept)})


def apply_ignore_rules(result: ComparisonResult, config: ComparisonConfig) -> FilterOutcome:
    """Run the exact filter, then the smart filter over what is left.

    Args:
        result: Raw result from the diff engine.
        config: Snapshot whose rules are applied.

    Returns:
        FilterOutcome with the filtered result and the suppressed count.
    """
    original_count = len(result.differences)
    filtered = filter_smart_ignored_differences(filter_ignored_differences(result, config), config)
    suppressed = original_count - len(filtered.differences)

    if suppressed > 0:
        logger.info(
            "Ignore rules removed %d of %d differences (kept %d)",
            suppressed,
            original_count,
            len(filtered.differences),
        )

    return FilterOutcome(result=filtered, suppressed_count=suppressed)


def filter_duplicate_differences(result: ComparisonResult) -> ComparisonResult:
    """Drop repeats of the same path with the same pair of values.

    The first occurrence is kept and relative order is preserved.
    """
    if len(result.differences) <= 1:
        return result

    seen: set[tuple[str, str, str]] = set()
    unique = []
    for difference in result.differences:
        key = (difference.property_path, repr(difference.value_a), repr(difference.value_b))
        if key in seen:
            continue
        seen.add(key)
        unique.append(difference)

    if len(unique) == len(result.differences):
        return result

    logger.debug(
        "Removed %d duplicate differences", len(result.differences) - len(unique)
    )
    return result.model_copy(update={"differences": tuple(unique)})
