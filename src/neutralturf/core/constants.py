"""Shared constants for distance, filtering and aggregation modules.

These constants define default values that are reused across multiple modules
(config schema, parameter filters, the streaming aggregator, the CLI).
Centralizing them here ensures consistency and makes them easy to update.
"""

# Treatment codes that mark an untransplanted control turf.
# Used in: find_controls(), AggregationSettings, the CLI template.
CONTROL_TREATMENTS: tuple[str, ...] = ("TTC", "TT1")

# Trait name that selects whole-community (Bray-Curtis) composition distance
# instead of a community weighted mean.
COMPOSITION_KEY: str = "veg"

# Significant digits kept on the immigration probability m before any
# parameter comparison. File names and upstream CSV writers both introduce
# float noise below this precision.
DEFAULT_SIGNIFICANT_DIGITS: int = 3

# Number of (file, trait) units processed between two merges of the
# accumulation buffer.
DEFAULT_FLUSH_EVERY: int = 50

# Grouping key of a distance-to-control record.
RECORD_KEY: tuple[str, ...] = ("trait", "turfID", "year", "m", "d")

# Column order of the finalized summary table.
SUMMARY_COLUMNS: tuple[str, ...] = ("trait", "turfID", "year", "m", "d", "dissimilarity")

# Column order of the in-flight accumulation buffer.
RECORD_COLUMNS: tuple[str, ...] = SUMMARY_COLUMNS + ("reps",)

# Key column joining the community table to the turf metadata.
TURF_YEAR: str = "turf.year"

# Identifier columns every simulated run record carries besides species cover.
SIMULATION_ID_COLUMNS: tuple[str, ...] = ("turfID", "year", "m", "d")
