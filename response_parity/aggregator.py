"""Result Aggregator - Folds pair results into a MultiFolderComparisonResult.

The fold is strictly left to right. Results that complete out of order (a
parallel run) are buffered by their input index and folded once every earlier
index has arrived, so file_pair_results always follows input order.

Metadata layout:
    equal_count, unequal_count, error_count   -> int
    outcome_counts                            -> {PairOutcome value: int}
    error_type_counts                         -> {error type name: int}
"""

from __future__ import annotations

from collections.abc import Iterable

from response_parity.models import FilePairComparisonResult, MultiFolderComparisonResult

UNCLASSIFIED = "unclassified"


class ResultAggregator:
    """Incremental builder for a MultiFolderComparisonResult.

    Usage:
        aggregator = ResultAggregator()
        for pair in pairs:
            aggregator.add(pair)
        summary = aggregator.build()
    """

    def __init__(self) -> None:
        self._result = MultiFolderComparisonResult(
            metadata={
                "equal_count": 0,
                "unequal_count": 0,
                "error_count": 0,
                "outcome_counts": {},
                "error_type_counts": {},
            }
        )
        self._pending: dict[int, FilePairComparisonResult] = {}
        self._next_index = 0

    @property
    def pending_count(self) -> int:
        """Results received ahead of an index that has not arrived yet."""
        return len(self._pending)

    def add(self, pair: FilePairComparisonResult) -> None:
        """Fold the next result in input order."""
        if self._pending:
            raise ValueError("add() cannot be mixed with out-of-order add_completed()")
        self._fold(pair)
        self._next_index += 1

    def add_completed(self, index: int, pair: FilePairComparisonResult) -> None:
        """Accept the result for input position `index`, in any completion order."""
        if index < self._next_index or index in self._pending:
            raise ValueError(f"Result for index {index} was already added")
        self._pending[index] = pair
        while self._next_index in self._pending:
            self._fold(self._pending.pop(self._next_index))
            self._next_index += 1

    def build(self) -> MultiFolderComparisonResult:
        """Return the aggregate. Every buffered index must have been folded."""
        if self._pending:
            missing = self._next_index
            raise ValueError(f"Cannot build summary: result for index {missing} is missing")
        return self._result.model_copy(deep=True)

    def _fold(self, pair: FilePairComparisonResult) -> None:
        result = self._result
        metadata = result.metadata

        result.file_pair_results.append(pair)
        result.total_pairs_compared += 1

        if pair.has_error:
            metadata["error_count"] += 1
            error_type = pair.error_type or "Unknown"
            error_types = metadata["error_type_counts"]
            error_types[error_type] = error_types.get(error_type, 0) + 1
        elif pair.are_equal:
            metadata["equal_count"] += 1
        else:
            metadata["unequal_count"] += 1

        # Monotonic: once false, never reset
        if not pair.are_equal:
            result.all_equal = False

        outcome = pair.pair_outcome.value if pair.pair_outcome is not None else UNCLASSIFIED
        outcomes = metadata["outcome_counts"]
        outcomes[outcome] = outcomes.get(outcome, 0) + 1


def aggregate_results(pairs: Iterable[FilePairComparisonResult]) -> MultiFolderComparisonResult:
    """Fold an ordered sequence of pair results."""
    aggregator = ResultAggregator()
    for pair in pairs:
        aggregator.add(pair)
    return aggregator.build()
