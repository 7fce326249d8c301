"""Pytest configuration and builders for response-parity tests.

This file provides:
- make_difference / make_result: ComparisonResult construction from path strings
- make_pair: FilePairComparisonResult with sensible defaults
"""

from __future__ import annotations

from typing import Any

from response_parity.models import (
    ComparisonConfig,
    ComparisonResult,
    Difference,
    DifferenceSummary,
    FilePairComparisonResult,
    PairOutcome,
)


def make_difference(
    property_path: str,
    value_a: Any = "a",
    value_b: Any = "b",
    description: str = "",
) -> Difference:
    """Create a Difference from a canonical path such as 'Items[0].Price'."""
    return Difference.from_path(property_path, value_a, value_b, description)


def make_result(*paths: str, config: ComparisonConfig | None = None) -> ComparisonResult:
    """Create a ComparisonResult with one difference per path, in order.

    Prefer this over building Difference tuples by hand; values differ on
    every difference so none of them count as duplicates.
    """
    differences = tuple(
        make_difference(path, value_a=f"a{i}", value_b=f"b{i}") for i, path in enumerate(paths)
    )
    return ComparisonResult(config=config or ComparisonConfig(), differences=differences)


def make_pair(
    name: str = "resp.json",
    difference_count: int = 0,
    error_message: str | None = None,
    error_type: str | None = None,
    outcome: PairOutcome | None = None,
    status_code_a: int | None = None,
    status_code_b: int | None = None,
) -> FilePairComparisonResult:
    """Create a finished pair result.

    Pairs with an error carry no summary, the same as the pipeline produces.
    """
    if error_message is not None:
        return FilePairComparisonResult(
            file1_name=name,
            file2_name=name,
            error_message=error_message,
            error_type=error_type,
            pair_outcome=outcome or PairOutcome.ERROR,
            http_status_code_a=status_code_a,
            http_status_code_b=status_code_b,
        )

    result = make_result(*(f"Field{i}" for i in range(difference_count)))
    if outcome is None:
        outcome = PairOutcome.EQUAL if difference_count == 0 else PairOutcome.DIFFERENCES_FOUND
    return FilePairComparisonResult(
        file1_name=name,
        file2_name=name,
        result=result,
        summary=DifferenceSummary.from_result(result),
        pair_outcome=outcome,
        http_status_code_a=status_code_a,
        http_status_code_b=status_code_b,
    )
