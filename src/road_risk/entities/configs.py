"""Configuration classes for the road risk pipelines"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from road_risk.constants import (
    DEFAULT_SPLIT_SEED,
    DEFAULT_SUBSET_SIZE,
    DEFAULT_TARGET,
    EVAL_MODES,
    FIT_SCOPES,
    KNOWN_CATEGORICAL,
    KNOWN_NUMERIC,
    SCALER_KINDS,
    SUBSAMPLE_SEED,
    TRAIN_FRACTION,
    VAL_FRACTION,
)
from road_risk.utils.config_utils import ensure_path

SUPPORTED_MODELS = ["mlp", "xgboost"]


@dataclass
class SubsetOptions:
    """Row subsampling applied right after parsing.

    Attributes:
        enabled: Whether to subsample at all.
        size: Number of rows to keep when the source has more.
        seed: Seed for the subsampling shuffle.
        drop_invalid_targets: Whether to drop rows whose target does not parse
            instead of failing later during encoding.
    """

    enabled: bool = False
    size: int = DEFAULT_SUBSET_SIZE
    seed: int = SUBSAMPLE_SEED
    drop_invalid_targets: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.size <= 0:
            raise ValueError(f"subset size must be positive, got {self.size}")
        if self.seed < 0:
            raise ValueError(f"subset seed must be non-negative, got {self.seed}")


@dataclass
class DatasetConfig:
    """Configuration for loading and preparing the road segment dataset.

    Attributes:
        source_path: Path to the comma-delimited source file.
        target_column: Name of the target column.
        known_categorical: Columns always treated as categorical.
        known_numeric: Columns always treated as numeric.
        subset: Subsampling options.
        scaler: Scaler kind ("minmax" or "standard").
        random_seed: Seed for the train/val/test split.
        fit_scope: Rows the scaler is fitted on ("full" or "train").
        train_fraction: Share of rows in the train partition.
        val_fraction: Share of rows in the validation partition.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """

    source_path: Path = Path("data/train.csv")
    target_column: str = DEFAULT_TARGET
    known_categorical: list[str] = field(default_factory=lambda: list(KNOWN_CATEGORICAL))
    known_numeric: list[str] = field(default_factory=lambda: list(KNOWN_NUMERIC))
    subset: SubsetOptions = field(default_factory=SubsetOptions)
    scaler: str = "minmax"
    random_seed: int = DEFAULT_SPLIT_SEED
    fit_scope: str = "full"
    train_fraction: float = TRAIN_FRACTION
    val_fraction: float = VAL_FRACTION
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.scaler not in SCALER_KINDS:
            raise ValueError(f"scaler must be 'minmax' or 'standard', got {self.scaler!r}")

        if self.fit_scope not in FIT_SCOPES:
            raise ValueError(f"fit_scope must be 'full' or 'train', got {self.fit_scope!r}")

        if self.random_seed < 0:
            raise ValueError(f"random_seed must be non-negative, got {self.random_seed}")

        if not 0.0 < self.train_fraction < 1.0:
            raise ValueError(f"train_fraction must be between 0 and 1, got {self.train_fraction}")

        if not 0.0 <= self.val_fraction < 1.0 - self.train_fraction:
            raise ValueError(
                f"val_fraction must be non-negative and leave room for a test partition, "
                f"got {self.val_fraction}"
            )

        self.source_path = ensure_path(self.source_path)


@dataclass
class ModelConfig:
    """Configuration for the risk regression model.

    Attributes:
        kind: Model family ('mlp' or 'xgboost').
        learning_rate: Optimiser learning rate.
        parameters: Extra keyword arguments for the underlying estimator.
    """

    kind: str = "mlp"
    learning_rate: float = 0.001
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate model configuration."""
        if self.kind not in SUPPORTED_MODELS:
            raise ValueError(
                f"Model kind '{self.kind}' not supported. Supported models: {SUPPORTED_MODELS}"
            )
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")


@dataclass
class TrainingConfig:
    """Configuration for fitting, evaluating and storing a model.

    Attributes:
        epochs: Number of passes over the train partition.
        batch_size: Mini-batch size.
        eval_mode: "reg" for regression metrics only, "bin" to add thresholded accuracy.
        threshold: Decision threshold used in "bin" mode.
        model_dir: Directory of the model store.
        model_key: Identifier the trained model is stored under.
        output_dir: Directory for evaluation figures.
        track_with_mlflow: Whether to log the run to MLflow.
        filters_path: Optional YAML file with a filter descriptor for filtered evaluation.
    """

    epochs: int = 10
    batch_size: int = 256
    eval_mode: str = "reg"
    threshold: float = 0.5
    model_dir: Path = Path("models")
    model_key: str = "accident-risk-model"
    output_dir: Path = Path("outputs")
    track_with_mlflow: bool = False
    filters_path: Optional[Path] = None

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.epochs <= 0:
            raise ValueError(f"epochs must be positive, got {self.epochs}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.eval_mode not in EVAL_MODES:
            raise ValueError(f"eval_mode must be one of {EVAL_MODES}, got {self.eval_mode!r}")
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be between 0 and 1, got {self.threshold}")

        self.model_dir = ensure_path(self.model_dir)
        self.output_dir = ensure_path(self.output_dir)
        if self.filters_path is not None:
            self.filters_path = ensure_path(self.filters_path)


@dataclass
class PreparationMetadata:
    """Metadata about a prepared dataset, stored alongside trained models.

    Attributes:
        feature_names: Flattened encoded column names.
        target_column: Name of the target variable.
        scaler: Scaler kind used.
        fit_scope: Rows the scaler was fitted on.
        random_seed: Split seed.
        n_rows: Rows after loading and subsampling.
        split_sizes: Rows per partition.
    """

    feature_names: list[str] = field(default_factory=list)
    target_column: str = DEFAULT_TARGET
    scaler: str = "minmax"
    fit_scope: str = "full"
    random_seed: int = DEFAULT_SPLIT_SEED
    n_rows: int = 0
    split_sizes: Dict[str, int] = field(default_factory=dict)
