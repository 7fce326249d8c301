"""Internal data models for response-parity.

All models use Pydantic v2. Differences, ignore rules and configuration
snapshots are frozen; pair results are filled in stage by stage by the pair
pipeline and are left mutable until the pair is finished.
"""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RuleConstructionError(Exception):
    """Raised when a smart ignore rule carries a pattern that does not compile."""


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a smart ignore pattern (case-insensitive, cached)."""
    return re.compile(pattern, re.IGNORECASE)


# Canonical segment form: Name, Name[3] or [3] for an element of a root collection
_SEGMENT_PATTERN = re.compile(r"^(?P<name>[^\[\]]*)(?:\[(?P<index>\d+)\])?$")


# =============================================================================
# Difference Models
# =============================================================================


class PathSegment(BaseModel):
    """One step of a property path, optionally addressing a collection element."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(description="Property name (empty for an element of a root collection)")
    index: int | None = Field(default=None, ge=0, description="Collection index, if any")

    def render(self) -> str:
        if self.index is None:
            return self.name
        return f"{self.name}[{self.index}]"


class Difference(BaseModel):
    """A single discrepancy reported by the diff engine.

    The path is kept as segments; property_path renders it in the canonical
    dotted form (Order.Items[0].Price) that exact ignore rules are matched against.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: tuple[PathSegment, ...] = Field(description="Ordered path segments")
    value_a: Any = Field(default=None, description="Value on side A")
    value_b: Any = Field(default=None, description="Value on side B")
    description: str = Field(default="", description="Human-readable description")

    @property
    def property_path(self) -> str:
        rendered = ""
        for segment in self.path:
            part = segment.render()
            if rendered and segment.name:
                rendered = f"{rendered}.{part}"
            else:
                rendered = f"{rendered}{part}"
        return rendered

    @property
    def property_name(self) -> str:
        """Name of the last path segment, without its index."""
        if not self.path:
            return ""
        return self.path[-1].name

    @classmethod
    def from_path(
        cls,
        property_path: str,
        value_a: Any = None,
        value_b: Any = None,
        description: str = "",
    ) -> Difference:
        """Build a Difference from a canonical path string such as 'Items[0].Price'."""
        return cls(
            path=parse_property_path(property_path),
            value_a=value_a,
            value_b=value_b,
            description=description,
        )


def parse_property_path(property_path: str) -> tuple[PathSegment, ...]:
    """Split a canonical path string into segments.

    Segments that are not in canonical form are kept verbatim as names.
    """
    if not property_path:
        return ()
    segments: list[PathSegment] = []
    for raw in property_path.split("."):
        match = _SEGMENT_PATTERN.match(raw)
        if match is None:
            segments.append(PathSegment(name=raw))
            continue
        index = match.group("index")
        segments.append(
            PathSegment(name=match.group("name"), index=int(index) if index is not None else None)
        )
    return tuple(segments)


# =============================================================================
# Ignore Rule Models
# =============================================================================


class IgnoreRule(BaseModel):
    """Exact-path ignore specification with optional per-path overrides.

    Only rules with ignore_completely suppress differences. Two rules are equal
    when their property paths are equal, whatever their overrides.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    property_path: str = Field(description="Canonical property path, e.g. Body.Items[*].Name")
    ignore_completely: bool = Field(default=True, description="Suppress differences at this path")
    ignore_collection_order: bool = Field(
        default=False, description="Compare the collection at this path without regard to order"
    )
    ignore_case: bool = Field(default=False, description="Compare strings at this path case-insensitively")

    @field_validator("property_path")
    @classmethod
    def validate_property_path(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("property_path must not be empty")
        return v

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IgnoreRule):
            return NotImplemented
        return self.property_path == other.property_path

    def __hash__(self) -> int:
        return hash(self.property_path)


class SmartIgnoreMode(str, Enum):
    """How a smart ignore rule is matched against a difference."""

    PROPERTY_NAME = "property_name"  # Last segment equals the value
    NAME_PATTERN = "name_pattern"  # Last segment matches the regex
    PATH_PATTERN = "path_pattern"  # Whole rendered path matches the regex
    PROPERTY_TYPE = "property_type"  # Runtime type of the differing value
    COLLECTION_ORDERING = "collection_ordering"  # Turns on global order-insensitivity


PATTERN_MODES = frozenset({SmartIgnoreMode.NAME_PATTERN, SmartIgnoreMode.PATH_PATTERN})


class SmartIgnoreRule(BaseModel):
    """Pattern-based ignore specification.

    Pattern modes compile their expression when the rule is built, so a bad
    pattern fails here with RuleConstructionError and never at match time.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: SmartIgnoreMode = Field(description="Matching mode")
    value: str = Field(min_length=1, description="Property name or regular expression")
    description: str = Field(default="", description="Why this rule exists")
    enabled: bool = Field(default=True, description="Disabled rules never match")

    @model_validator(mode="after")
    def check_pattern(self) -> Self:
        if self.mode in PATTERN_MODES:
            try:
                compile_pattern(self.value)
            except re.error as e:
                raise RuleConstructionError(
                    f"Invalid {self.mode.value} pattern '{self.value}': {e}"
                ) from e
        return self

    @classmethod
    def by_property_name(cls, property_name: str, description: str | None = None) -> SmartIgnoreRule:
        return cls(
            mode=SmartIgnoreMode.PROPERTY_NAME,
            value=property_name,
            description=description or f"Ignore all '{property_name}' properties",
        )

    @classmethod
    def by_name_pattern(cls, pattern: str, description: str | None = None) -> SmartIgnoreRule:
        return cls(
            mode=SmartIgnoreMode.NAME_PATTERN,
            value=pattern,
            description=description or f"Ignore properties matching '{pattern}'",
        )

    @classmethod
    def by_path_pattern(cls, pattern: str, description: str | None = None) -> SmartIgnoreRule:
        return cls(
            mode=SmartIgnoreMode.PATH_PATTERN,
            value=pattern,
            description=description or f"Ignore paths matching '{pattern}'",
        )

    @classmethod
    def by_property_type(cls, value_type: type | str, description: str | None = None) -> SmartIgnoreRule:
        """Ignore every difference whose value has this type.

        A class is stored by its qualified name (datetime.datetime); a string
        is stored as given and may be the bare or the qualified name.
        """
        if isinstance(value_type, type):
            name = value_type.__name__
            value = f"{value_type.__module__}.{value_type.__qualname__}"
        else:
            name = value = value_type
        return cls(
            mode=SmartIgnoreMode.PROPERTY_TYPE,
            value=value,
            description=description or f"Ignore all {name} properties",
        )

    @classmethod
    def ignore_collection_ordering(cls, description: str = "Ignore collection item ordering") -> SmartIgnoreRule:
        return cls(mode=SmartIgnoreMode.COLLECTION_ORDERING, value="true", description=description)


# =============================================================================
# Configuration Models
# =============================================================================


class ComparisonConfigurationOptions(BaseModel):
    """Construction-time options for the configuration service."""

    model_config = ConfigDict(extra="forbid")

    max_differences: int = Field(default=100, ge=1, description="Max differences the engine reports")
    default_ignore_collection_order: bool = Field(
        default=False, description="Initial global collection-order setting"
    )
    default_ignore_string_case: bool = Field(
        default=False, description="Initial global string-case setting"
    )


class ComparisonConfig(BaseModel):
    """Immutable snapshot of the comparison configuration for one run.

    Built by ComparisonConfigurationService.get_current_config(); read by the
    difference filter and handed to the diff engine.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_differences: int = Field(default=100, ge=1)
    ignore_collection_order: bool = False
    case_sensitive: bool = True
    ignore_rules: tuple[IgnoreRule, ...] = ()
    smart_ignore_rules: tuple[SmartIgnoreRule, ...] = ()
    members_to_ignore: tuple[str, ...] = Field(
        default=(), description="Paths the engine should exclude structurally"
    )
    collection_order_paths: tuple[str, ...] = Field(
        default=(), description="Paths whose collections are compared without order"
    )


class ComparisonRulesFile(BaseModel):
    """Top-level comparison rules file structure (YAML or JSON)."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="1", description="Schema version")
    description: str | None = Field(default=None, description="Optional description")
    options: ComparisonConfigurationOptions = Field(default_factory=ComparisonConfigurationOptions)
    ignore_rules: list[IgnoreRule] = Field(default_factory=list)
    smart_ignore_rules: list[SmartIgnoreRule] = Field(default_factory=list)
    presets: list[str] = Field(default_factory=list, description="Smart-ignore preset names")


# =============================================================================
# Comparison Result Models
# =============================================================================


class ComparisonResult(BaseModel):
    """Differences produced for one pair, with the configuration that produced them."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    config: ComparisonConfig = Field(default_factory=ComparisonConfig)
    differences: tuple[Difference, ...] = ()

    @property
    def are_equal(self) -> bool:
        return not self.differences


class DifferenceSummary(BaseModel):
    """Derived counts for one pair."""

    model_config = ConfigDict(extra="forbid")

    are_equal: bool = Field(description="No differences survived filtering")
    total_difference_count: int = Field(default=0, ge=0)
    ignored_difference_count: int = Field(default=0, ge=0, description="Suppressed by ignore rules")
    differences_by_root_object: dict[str, int] = Field(
        default_factory=dict, description="Difference count per first path segment"
    )

    @classmethod
    def from_result(cls, result: ComparisonResult, ignored: int = 0) -> DifferenceSummary:
        by_root: dict[str, int] = {}
        for difference in result.differences:
            root = difference.path[0].name if difference.path else ""
            by_root[root] = by_root.get(root, 0) + 1
        return cls(
            are_equal=result.are_equal,
            total_difference_count=len(result.differences),
            ignored_difference_count=ignored,
            differences_by_root_object=by_root,
        )


class RawTextDifferenceType(str, Enum):
    """Kind of line-level difference."""

    ONLY_IN_A = "only_in_a"
    ONLY_IN_B = "only_in_b"
    MODIFIED = "modified"
    STATUS_CODE_DIFFERENCE = "status_code_difference"


class RawTextDifference(BaseModel):
    """A line-level difference used when structural comparison does not apply."""

    model_config = ConfigDict(extra="forbid")

    type: RawTextDifferenceType
    line_number_a: int | None = Field(default=None, ge=1, description="1-based line in A")
    line_number_b: int | None = Field(default=None, ge=1, description="1-based line in B")
    text_a: str | None = None
    text_b: str | None = None
    description: str = ""


class PairOutcome(str, Enum):
    """Classification of one compared pair."""

    EQUAL = "equal"
    NON_SUCCESS_MATCH = "non_success_match"  # Both non-2xx with identical bodies
    DIFFERENCES_FOUND = "differences_found"
    STATUS_CODE_MISMATCH = "status_code_mismatch"
    ERROR = "error"


class FilePairComparisonResult(BaseModel):
    """Full outcome of one compared pair.

    Populated stage by stage. A pair with an error is never equal: equality
    cannot be established without a successful comparison.
    """

    model_config = ConfigDict(extra="forbid")

    file1_name: str = Field(default="", description="Display name on side A")
    file2_name: str = Field(default="", description="Display name on side B")
    file1_path: str | None = Field(default=None, description="Full path on side A, for raw preview")
    file2_path: str | None = Field(default=None, description="Full path on side B, for raw preview")
    request_relative_path: str | None = Field(
        default=None, description="Stable identity when display names collide"
    )
    result: ComparisonResult | None = None
    summary: DifferenceSummary | None = None
    http_status_code_a: int | None = None
    http_status_code_b: int | None = None
    pair_outcome: PairOutcome | None = None
    raw_text_differences: list[RawTextDifference] | None = None
    error_message: str | None = None
    error_type: str | None = None

    @property
    def has_error(self) -> bool:
        return bool(self.error_message)

    @property
    def are_equal(self) -> bool:
        return not self.has_error and self.summary is not None and self.summary.are_equal

    @property
    def pair_key(self) -> str:
        return self.request_relative_path or self.file1_name


class MultiFolderComparisonResult(BaseModel):
    """Aggregate over many pairs, in input order."""

    model_config = ConfigDict(extra="forbid")

    all_equal: bool = True
    total_pairs_compared: int = 0
    file_pair_results: list[FilePairComparisonResult] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
