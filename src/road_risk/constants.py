"""Dataset-level defaults shared by configs and the preparation pipeline."""

DEFAULT_TARGET = "accident_risk"

KNOWN_CATEGORICAL = (
    "road_type",
    "lighting",
    "weather",
    "time_of_day",
    "road_signs_present",
    "public_road",
    "holiday",
    "school_season",
)
KNOWN_NUMERIC = ("num_lanes", "curvature", "speed_limit", "num_reported_accidents")

TRAIN_FRACTION = 0.7
VAL_FRACTION = 0.15

DEFAULT_SPLIT_SEED = 2025
SUBSAMPLE_SEED = 2024
DEFAULT_SUBSET_SIZE = 50000

SCALER_KINDS = ("minmax", "standard")
FIT_SCOPES = ("full", "train")
EVAL_MODES = ("reg", "bin")
