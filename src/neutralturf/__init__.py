"""
neutralturf: neutral community simulations scored against field controls.

Compares simulated plant-community trajectories from climate-transplant
experiments with local field controls, and merges the resulting
dissimilarities across an arbitrarily large simulation corpus into one
summary table under bounded memory.

Example usage:
    >>> from neutralturf.config import PipelineConfig
    >>> config = PipelineConfig.from_yaml("pipeline.yaml")

    >>> from neutralturf import StreamingAggregator, load_field_data
    >>> field = load_field_data("cover.csv", "cover_meta.csv", "traits.csv")
    >>> aggregator = StreamingAggregator(field, targets, config.trait_specs())
    >>> outcome = aggregator.run(paths)

Key modules:
    - config: Configuration management with YAML support
    - field: Observed cover, metadata and trait tables
    - distances: Bray-Curtis and CWM distances, control matching, scoring
    - corpus: Corpus discovery, reading and parameter filtering
    - aggregation: Weighted-mean merging, baseline rows, streaming driver

Note:
    Submodules are imported lazily, so ``import neutralturf`` does not pull
    in pandas or scipy until one of the names below is accessed.
"""

__version__ = "0.3.0"

# Define what's available for lazy import
__all__ = [
    "__version__",
    # Configuration
    "PipelineConfig",
    # Field data
    "FieldData",
    "load_field_data",
    # Scoring
    "score_observed",
    "score_simulated",
    # Aggregation
    "DistanceAccumulator",
    "StreamingAggregator",
    "RunReport",
]


def __getattr__(name: str):
    """Lazy import submodules only when accessed."""
    if name == "PipelineConfig":
        from neutralturf.config.schema import PipelineConfig

        return PipelineConfig

    if name == "FieldData":
        from neutralturf.field import FieldData

        return FieldData

    if name == "load_field_data":
        from neutralturf.field import load_field_data

        return load_field_data

    if name == "score_observed":
        from neutralturf.distances.evaluator import score_observed

        return score_observed

    if name == "score_simulated":
        from neutralturf.distances.evaluator import score_simulated

        return score_simulated

    if name == "DistanceAccumulator":
        from neutralturf.aggregation.summary import DistanceAccumulator

        return DistanceAccumulator

    if name == "StreamingAggregator":
        from neutralturf.aggregation.streaming import StreamingAggregator

        return StreamingAggregator

    if name == "RunReport":
        from neutralturf.results import RunReport

        return RunReport

    raise AttributeError(f"module 'neutralturf' has no attribute {name!r}")


def __dir__():
    """Return list of available attributes for tab completion."""
    return __all__
