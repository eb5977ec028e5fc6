"""Merging distance-to-control records across a simulation corpus."""

from neutralturf.aggregation.baseline import (
    add_baseline_rows,
    earliest_observed,
    target_groups,
)
from neutralturf.aggregation.streaming import AggregationOutcome, StreamingAggregator
from neutralturf.aggregation.summary import (
    DistanceAccumulator,
    collapse_records,
    empty_records,
    finalize_summary,
    read_summary,
    write_summary,
)

__all__ = [
    # summary.py
    "DistanceAccumulator",
    "collapse_records",
    "empty_records",
    "finalize_summary",
    "read_summary",
    "write_summary",
    # baseline.py
    "add_baseline_rows",
    "earliest_observed",
    "target_groups",
    # streaming.py
    "AggregationOutcome",
    "StreamingAggregator",
]
