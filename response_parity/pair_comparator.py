"""Pair Comparator - Runs one pair, or many pairs in parallel, through the pipeline.

Per pair the stages are:

    upstream error?            -> ERROR, nothing is compared
    status codes differ, or
    both sides non-2xx         -> raw text comparison of the bodies
    otherwise                  -> normalize, engine diff, duplicate filter,
                                  ignore filters, summary

and the pair is classified last. The diff engine is anything with a
diff(object_a, object_b, config) method returning a ComparisonResult.

compare_pairs() fans pairs out over a thread pool and folds completions back
into input order with the ResultAggregator.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from response_parity.aggregator import ResultAggregator
from response_parity.classifier import classify_pair, is_success_status
from response_parity.difference_filter import apply_ignore_rules, filter_duplicate_differences
from response_parity.models import (
    ComparisonConfig,
    ComparisonResult,
    DifferenceSummary,
    FilePairComparisonResult,
    MultiFolderComparisonResult,
    PairOutcome,
    RawTextDifference,
)
from response_parity.normalizer import AccessorRegistry, normalize_property_values
from response_parity.text_diff import compare_raw_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class ComparisonCancelledError(Exception):
    """Raised when a parallel run is cancelled before every pair finished."""


@runtime_checkable
class DiffEngine(Protocol):
    """Structural comparison of two deserialized objects."""

    def diff(self, object_a: Any, object_b: Any, config: ComparisonConfig) -> ComparisonResult:
        ...


RawTextComparer = Callable[[str | None, str | None, int | None, int | None], list[RawTextDifference]]


@dataclass
class PairInput:
    """One pair of responses (or files) to compare.

    object_a/object_b are the deserialized bodies handed to the diff engine;
    text_a/text_b are the raw bodies used by the text fallback. error carries
    a failure from retrieving or deserializing either side.
    """

    file1_name: str
    file2_name: str
    object_a: Any = None
    object_b: Any = None
    text_a: str | None = None
    text_b: str | None = None
    file1_path: str | None = None
    file2_path: str | None = None
    request_relative_path: str | None = None
    status_code_a: int | None = None
    status_code_b: int | None = None
    error: BaseException | None = None


def _error_fields(error: BaseException) -> tuple[str, str]:
    error_type = type(error).__name__
    return str(error) or error_type, error_type


class PairComparator:
    """Compares a single pair against a configuration snapshot.

    Usage:
        comparator = PairComparator(engine, normalize_properties=["Timestamp"])
        pair_result = comparator.compare(pair, service.get_current_config())
    """

    def __init__(
        self,
        engine: DiffEngine,
        *,
        normalize_properties: Iterable[str] = (),
        registry: AccessorRegistry | None = None,
        raw_text_comparer: RawTextComparer = compare_raw_text,
        deduplicate: bool = True,
    ) -> None:
        """Initialize the comparator.

        Args:
            engine: Structural diff engine.
            normalize_properties: Property names reset to zero values on both
                objects before diffing. The objects are modified in place.
            registry: Accessor tables for normalization. Module default if None.
            raw_text_comparer: Text fallback for non-success and mismatched pairs.
            deduplicate: Drop repeated differences before filtering.
        """
        self._engine = engine
        self._normalize_properties = tuple(normalize_properties)
        self._registry = registry
        self._raw_text_comparer = raw_text_comparer
        self._deduplicate = deduplicate

    def compare(self, pair: PairInput, config: ComparisonConfig) -> FilePairComparisonResult:
        result = FilePairComparisonResult(
            file1_name=pair.file1_name,
            file2_name=pair.file2_name,
            file1_path=pair.file1_path,
            file2_path=pair.file2_path,
            request_relative_path=pair.request_relative_path,
            http_status_code_a=pair.status_code_a,
            http_status_code_b=pair.status_code_b,
        )

        if pair.error is not None:
            result.error_message, result.error_type = _error_fields(pair.error)
            result.pair_outcome = PairOutcome.ERROR
            return result

        try:
            if self._needs_text_comparison(pair):
                self._compare_as_text(pair, result)
            else:
                self._compare_structurally(pair, config, result)
        except Exception as e:
            # Failures in any stage become error pairs
            logger.warning("Comparison of %s failed: %s", pair.request_relative_path or pair.file1_name, e)
            result.result = None
            result.summary = None
            result.raw_text_differences = None
            result.error_message, result.error_type = _error_fields(e)

        result.pair_outcome = classify_pair(result)
        return result

    def _needs_text_comparison(self, pair: PairInput) -> bool:
        status_a, status_b = pair.status_code_a, pair.status_code_b
        if status_a is None and status_b is None:
            return False
        if status_a != status_b:
            return True
        return not is_success_status(status_a)

    def _compare_as_text(self, pair: PairInput, result: FilePairComparisonResult) -> None:
        raw_differences = self._raw_text_comparer(
            pair.text_a, pair.text_b, pair.status_code_a, pair.status_code_b
        )
        result.raw_text_differences = raw_differences
        result.summary = DifferenceSummary(
            are_equal=pair.status_code_a == pair.status_code_b and not raw_differences,
            total_difference_count=len(raw_differences),
        )

    def _compare_structurally(
        self,
        pair: PairInput,
        config: ComparisonConfig,
        result: FilePairComparisonResult,
    ) -> None:
        if self._normalize_properties:
            for obj in (pair.object_a, pair.object_b):
                normalize_property_values(obj, self._normalize_properties, self._registry)

        raw = self._engine.diff(pair.object_a, pair.object_b, config)
        if self._deduplicate:
            raw = filter_duplicate_differences(raw)

        outcome = apply_ignore_rules(raw, config)
        result.result = outcome.result
        result.summary = DifferenceSummary.from_result(outcome.result, ignored=outcome.suppressed_count)


def compare_pairs(
    comparator: PairComparator,
    pairs: Sequence[PairInput],
    config: ComparisonConfig,
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel_event: threading.Event | None = None,
) -> MultiFolderComparisonResult:
    """Compare many pairs concurrently and aggregate them in input order.

    Args:
        comparator: Pipeline applied to every pair.
        pairs: Pairs in the order the summary should list them.
        config: One snapshot shared by the whole run.
        max_workers: Upper bound on concurrently compared pairs.
        cancel_event: When set, pending pairs are cancelled.

    Returns:
        Aggregate over all pairs.

    Raises:
        ComparisonCancelledError: If cancel_event was set before the run finished.
        ValueError: If max_workers is less than 1.
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")

    aggregator = ResultAggregator()
    cancelled = False
    logger.info("Comparing %d pairs with up to %d workers", len(pairs), max_workers)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="response-parity-") as executor:
        futures: dict[Future, int] = {}
        for index, pair in enumerate(pairs):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            futures[executor.submit(comparator.compare, pair, config)] = index

        for future in as_completed(futures):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            aggregator.add_completed(futures[future], future.result())

        if cancelled:
            for pending in futures:
                pending.cancel()

    if cancelled:
        logger.info("Comparison run cancelled")
        raise ComparisonCancelledError(
            f"Comparison cancelled before all {len(pairs)} pairs finished"
        )

    summary = aggregator.build()
    logger.info(
        "Compared %d pairs: %d equal, %d unequal, %d errors",
        summary.total_pairs_compared,
        summary.metadata["equal_count"],
        summary.metadata["unequal_count"],
        summary.metadata["error_count"],
    )
    return summary
