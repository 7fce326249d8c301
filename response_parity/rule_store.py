"""Ignore Rule Store - Owns the mutable comparison configuration.

The service holds global options plus the exact and smart ignore rule lists.
It is mutated only through its own methods; every comparison run should take
one snapshot with get_current_config() and pass it to the filter functions and
the diff engine, so rule edits for the next run never leak into a run that is
already in flight.

Usage:
    service = ComparisonConfigurationService(ComparisonConfigurationOptions(max_differences=500))
    service.ignore_property("Order.Timestamp")
    service.add_smart_ignore_rule(SmartIgnoreRule.by_name_pattern(r".*Id"))
    service.apply_configured_settings()
    config = service.get_current_config()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from threading import RLock
from typing import Any

from response_parity.difference_filter import (
    FilterOutcome,
    apply_ignore_rules,
    filter_ignored_differences,
    filter_smart_ignored_differences,
)
from response_parity.models import (
    ComparisonConfig,
    ComparisonConfigurationOptions,
    ComparisonResult,
    IgnoreRule,
    SmartIgnoreMode,
    SmartIgnoreRule,
)
from response_parity.normalizer import AccessorRegistry, default_registry, normalize_property_values
from response_parity.presets import get_preset

logger = logging.getLogger(__name__)


def _unique_paths(paths: Iterable[str]) -> tuple[str, ...]:
    """Rule paths as written, de-duplicated in order."""
    return tuple(dict.fromkeys(paths))


class ComparisonConfigurationService:
    """Process-wide store of comparison settings and ignore rules.

    Insertion is additive (duplicate paths are kept in order); removal is
    idempotent. All access is serialised by a re-entrant lock.
    """

    def __init__(
        self,
        options: ComparisonConfigurationOptions | None = None,
        registry: AccessorRegistry | None = None,
    ) -> None:
        """Initialize the service from construction-time options.

        Args:
            options: Global defaults. ComparisonConfigurationOptions() if None.
            registry: Accessor tables used by normalize_property_values.
        """
        options = options or ComparisonConfigurationOptions()
        self._lock = RLock()
        self._registry = registry or default_registry
        self._max_differences = options.max_differences
        self._ignore_collection_order = options.default_ignore_collection_order
        self._case_sensitive = not options.default_ignore_string_case
        self._ignore_rules: list[IgnoreRule] = []
        self._smart_ignore_rules: list[SmartIgnoreRule] = []
        self._members_to_ignore: tuple[str, ...] = ()
        self._collection_order_paths: tuple[str, ...] = ()

        logger.info(
            "Initialized comparison configuration with max_differences=%d, "
            "ignore_collection_order=%s, ignore_case=%s",
            options.max_differences,
            options.default_ignore_collection_order,
            options.default_ignore_string_case,
        )

    # -------------------------------------------------------------------------
    # Snapshot and global settings
    # -------------------------------------------------------------------------

    def get_current_config(self) -> ComparisonConfig:
        """Immutable snapshot of the current configuration."""
        with self._lock:
            return ComparisonConfig(
                max_differences=self._max_differences,
                ignore_collection_order=self._ignore_collection_order,
                case_sensitive=self._case_sensitive,
                ignore_rules=tuple(self._ignore_rules),
                smart_ignore_rules=tuple(self._smart_ignore_rules),
                members_to_ignore=self._members_to_ignore,
                collection_order_paths=self._collection_order_paths,
            )

    def set_ignore_collection_order(self, ignore_order: bool) -> None:
        with self._lock:
            self._ignore_collection_order = ignore_order
        logger.debug("Set ignore_collection_order to %s", ignore_order)

    def get_ignore_collection_order(self) -> bool:
        with self._lock:
            return self._ignore_collection_order

    def set_ignore_string_case(self, ignore_case: bool) -> None:
        with self._lock:
            self._case_sensitive = not ignore_case
        logger.debug("Set case_sensitive to %s (ignore_case=%s)", not ignore_case, ignore_case)

    def get_ignore_string_case(self) -> bool:
        with self._lock:
            return not self._case_sensitive

    # -------------------------------------------------------------------------
    # Exact ignore rules
    # -------------------------------------------------------------------------

    def ignore_property(self, property_path: str) -> None:
        """Shorthand for adding a rule that ignores one path completely."""
        self.add_ignore_rule(IgnoreRule(property_path=property_path))

    def add_ignore_rule(self, rule: IgnoreRule) -> None:
        with self._lock:
            self._ignore_rules.append(rule)
        logger.debug(
            "Added ignore rule for %s (ignore_completely=%s, ignore_collection_order=%s)",
            rule.property_path,
            rule.ignore_completely,
            rule.ignore_collection_order,
        )

    def add_ignore_rules_batch(self, rules: Iterable[IgnoreRule]) -> None:
        rules = list(rules)
        with self._lock:
            self._ignore_rules.extend(rules)
        logger.debug("Added %d ignore rules in batch", len(rules))

    def remove_ignored_property(self, property_path: str) -> None:
        """Remove every rule for a path. Unknown paths are a no-op."""
        with self._lock:
            remaining = [r for r in self._ignore_rules if r.property_path != property_path]
            if len(remaining) == len(self._ignore_rules):
                return
            self._ignore_rules = remaining
            self._prune_applied_settings()
        logger.debug("Removed ignore rules for %s", property_path)

    def clear_ignore_rules(self) -> None:
        with self._lock:
            self._ignore_rules = []
            self._prune_applied_settings()
        logger.debug("Cleared all ignore rules")

    def get_ignore_rules(self) -> list[IgnoreRule]:
        with self._lock:
            return list(self._ignore_rules)

    def get_ignored_properties(self) -> list[str]:
        """Paths of the rules that ignore a property completely."""
        with self._lock:
            return [r.property_path for r in self._ignore_rules if r.ignore_completely]

    # -------------------------------------------------------------------------
    # Smart ignore rules
    # -------------------------------------------------------------------------

    def add_smart_ignore_rule(self, rule: SmartIgnoreRule) -> None:
        with self._lock:
            self._smart_ignore_rules.append(rule)
        logger.debug("Added smart ignore rule %s '%s'", rule.mode.value, rule.value)

    def add_smart_ignore_preset(self, name: str) -> None:
        """Append a named preset. Raises ValueError for unknown names."""
        rules = get_preset(name)
        with self._lock:
            self._smart_ignore_rules.extend(rules)
        logger.debug("Added smart ignore preset '%s' (%d rules)", name, len(rules))

    def remove_smart_ignore_rule(self, rule: SmartIgnoreRule) -> None:
        """Remove every rule equal to `rule`. Absent rules are a no-op."""
        with self._lock:
            self._smart_ignore_rules = [r for r in self._smart_ignore_rules if r != rule]
        logger.debug("Removed smart ignore rule %s '%s'", rule.mode.value, rule.value)

    def clear_smart_ignore_rules(self) -> None:
        with self._lock:
            self._smart_ignore_rules = []
        logger.debug("Cleared all smart ignore rules")

    def get_smart_ignore_rules(self) -> list[SmartIgnoreRule]:
        with self._lock:
            return list(self._smart_ignore_rules)

    # -------------------------------------------------------------------------
    # Engine settings
    # -------------------------------------------------------------------------

    def apply_configured_settings(self) -> None:
        """Push the current rules into the engine-facing exclusion lists.

        Paths of rules that ignore completely become members_to_ignore, so a
        supporting engine never produces differences for them. Rules that only
        ask for order-insensitive collections become collection_order_paths.
        An enabled collection-ordering smart rule turns on global
        ignore_collection_order.
        Post-hoc filtering still applies on top of this.
        """
        with self._lock:
            if not self._ignore_collection_order and any(
                r.enabled and r.mode == SmartIgnoreMode.COLLECTION_ORDERING for r in self._smart_ignore_rules
            ):
                self._ignore_collection_order = True
                logger.info("Collection ordering smart rule present; ignoring collection order globally")
            self._members_to_ignore = _unique_paths(
                r.property_path for r in self._ignore_rules if r.ignore_completely
            )
            self._collection_order_paths = _unique_paths(
                r.property_path
                for r in self._ignore_rules
                if r.ignore_collection_order and not r.ignore_completely
            )
            if self._ignore_collection_order and self._collection_order_paths:
                logger.warning(
                    "Global ignore_collection_order is on; per-path collection order "
                    "rules for %d paths have no additional effect",
                    len(self._collection_order_paths),
                )
            members_count = len(self._members_to_ignore)
            order_count = len(self._collection_order_paths)

        logger.info(
            "Applied configuration settings: %d members to ignore, %d collection order paths",
            members_count,
            order_count,
        )

    def _prune_applied_settings(self) -> None:
        # Drop exclusions whose rules are gone; never add new ones here
        still_ignored = set(
            _unique_paths(r.property_path for r in self._ignore_rules if r.ignore_completely)
        )
        still_ordered = set(
            _unique_paths(
                r.property_path
                for r in self._ignore_rules
                if r.ignore_collection_order and not r.ignore_completely
            )
        )
        self._members_to_ignore = tuple(m for m in self._members_to_ignore if m in still_ignored)
        self._collection_order_paths = tuple(
            p for p in self._collection_order_paths if p in still_ordered
        )

    # -------------------------------------------------------------------------
    # Filtering and normalization against the current snapshot
    # -------------------------------------------------------------------------

    def filter_ignored_differences(self, result: ComparisonResult) -> ComparisonResult:
        return filter_ignored_differences(result, self.get_current_config())

    def filter_smart_ignored_differences(self, result: ComparisonResult) -> ComparisonResult:
        return filter_smart_ignored_differences(result, self.get_current_config())

    def filter_differences(self, result: ComparisonResult) -> FilterOutcome:
        """Exact then smart filtering, with the suppressed count."""
        return apply_ignore_rules(result, self.get_current_config())

    def normalize_property_values(self, obj: Any, property_names: Iterable[str]) -> int:
        return normalize_property_values(obj, property_names, self._registry)
