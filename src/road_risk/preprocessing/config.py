"""Building of the dataset configuration from the data and preprocessing sections."""

from pathlib import Path
from typing import Any, Dict

from road_risk.constants import (
    DEFAULT_SPLIT_SEED,
    DEFAULT_SUBSET_SIZE,
    DEFAULT_TARGET,
    KNOWN_CATEGORICAL,
    KNOWN_NUMERIC,
    SUBSAMPLE_SEED,
    TRAIN_FRACTION,
    VAL_FRACTION,
)
from road_risk.entities.configs import DatasetConfig, SubsetOptions
from road_risk.utils.config_utils import get_and_validate_dict


def build_dataset_config(config_dict: Dict[str, Any]) -> DatasetConfig:
    """Build a DatasetConfig from the 'data' and optional 'preprocessing' sections.

    Raises:
        ValueError: If a section is not a dictionary or a value is invalid.
    """
    data_dict = get_and_validate_dict(config_dict, "data")
    preprocessing_dict = get_and_validate_dict(config_dict, "preprocessing", required=False)
    subset_dict = get_and_validate_dict(data_dict, "subset", required=False)

    subset = SubsetOptions(
        enabled=subset_dict.get("enabled", False),
        size=subset_dict.get("size", DEFAULT_SUBSET_SIZE),
        seed=subset_dict.get("seed", SUBSAMPLE_SEED),
        drop_invalid_targets=subset_dict.get("drop_invalid_targets", False),
    )

    return DatasetConfig(
        source_path=Path(data_dict.get("source_path", "data/train.csv")),
        target_column=data_dict.get("target_column", DEFAULT_TARGET),
        known_categorical=preprocessing_dict.get("known_categorical", list(KNOWN_CATEGORICAL)),
        known_numeric=preprocessing_dict.get("known_numeric", list(KNOWN_NUMERIC)),
        subset=subset,
        scaler=preprocessing_dict.get("scaler", "minmax"),
        random_seed=data_dict.get("random_state", DEFAULT_SPLIT_SEED),
        fit_scope=preprocessing_dict.get("fit_scope", "full"),
        train_fraction=data_dict.get("train_fraction", TRAIN_FRACTION),
        val_fraction=data_dict.get("val_fraction", VAL_FRACTION),
        log_level=data_dict.get("log_level", "INFO"),
    )
