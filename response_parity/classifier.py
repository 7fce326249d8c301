"""Outcome Classifier - Assigns one PairOutcome to a compared pair.

Rules are checked in order and the first match wins:

1. Either side had a hard error                    -> ERROR
2. Status codes present and unequal                -> STATUS_CODE_MISMATCH
3. Status codes equal and both non-2xx             -> decided on raw text differences
4. No structural differences                       -> EQUAL
5. Structural differences                          -> DIFFERENCES_FOUND

A status-code mismatch always wins over structural equality: a 200 vs 500 pair
is never equal, whatever the bodies look like. Without status codes (file and
folder comparisons) classification is purely structural.
"""

from __future__ import annotations

from collections.abc import Sequence

from response_parity.models import FilePairComparisonResult, PairOutcome, RawTextDifference


class ClassificationError(Exception):
    """No classification rule matched. Indicates a defect, not bad data."""


def is_success_status(status_code: int) -> bool:
    """True for 2xx status codes."""
    return 200 <= status_code < 300


def classify_outcome(
    status_code_a: int | None,
    status_code_b: int | None,
    difference_count: int,
    *,
    has_error: bool = False,
    raw_text_differences: Sequence[RawTextDifference] | None = None,
) -> PairOutcome:
    """Classify one pair.

    Args:
        status_code_a: HTTP status from side A, None for file comparisons.
        status_code_b: HTTP status from side B, None for file comparisons.
        difference_count: Structural differences left after filtering.
        has_error: Either side failed to be retrieved, deserialized or compared.
        raw_text_differences: Line differences between non-success bodies.
            None is treated as no differences.

    Returns:
        The pair's outcome.

    Raises:
        ClassificationError: If no rule applies (negative difference_count).
    """
    if has_error:
        return PairOutcome.ERROR

    if status_code_a is not None or status_code_b is not None:
        # One side without a status cannot match a side that has one
        if status_code_a != status_code_b:
            return PairOutcome.STATUS_CODE_MISMATCH

        if not is_success_status(status_code_a):
            if raw_text_differences:
                return PairOutcome.DIFFERENCES_FOUND
            return PairOutcome.NON_SUCCESS_MATCH

    if difference_count == 0:
        return PairOutcome.EQUAL

    if difference_count > 0:
        return PairOutcome.DIFFERENCES_FOUND

    raise ClassificationError(
        f"No outcome for status codes {status_code_a}/{status_code_b} "
        f"with difference_count={difference_count}"
    )


def classify_pair(pair: FilePairComparisonResult) -> PairOutcome:
    """Classify a pair result from the fields populated so far."""
    difference_count = len(pair.result.differences) if pair.result is not None else 0
    return classify_outcome(
        pair.http_status_code_a,
        pair.http_status_code_b,
        difference_count,
        has_error=pair.has_error,
        raw_text_differences=pair.raw_text_differences,
    )
