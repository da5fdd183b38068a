"""Predictor bundling a prepared dataset with a stored model for evaluation and scoring."""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from road_risk.entities.configs import DatasetConfig, TrainingConfig
from road_risk.preprocessing.dataset import RoadRiskDataset
from road_risk.preprocessing.filters import default_descriptor, parse_filter_descriptor
from road_risk.serving.model_store import ModelStore, StoredModel
from road_risk.training.evaluation import (
    PartitionEvaluation,
    evaluate_filtered,
    evaluate_partition,
)


class RiskPredictor:
    """Loads the source data and a stored model, and serves evaluations and predictions.

    The dataset is prepared with the scaler kind, seed and fit scope recorded
    in the model's metadata, so the test partition and the scaling are the ones
    the model was trained with.

    Attributes:
        dataset_config: Configuration for the source data.
        training_config: Configuration holding the model store location and key.
        dataset: Prepared dataset, once loaded.
        stored: Loaded model and metadata, once loaded.
        logger: Logger instance for tracking operations.
    """

    def __init__(
        self,
        dataset_config: DatasetConfig,
        training_config: TrainingConfig,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize RiskPredictor.

        Args:
            dataset_config: Configuration for the source data.
            training_config: Configuration holding the model store location and key.
            logger: Logger instance for tracking operations.
        """
        self.dataset_config = dataset_config
        self.training_config = training_config
        self.logger = logger or logging.getLogger("risk_predictor")
        self.store = ModelStore(training_config.model_dir, self.logger)
        self.dataset = RoadRiskDataset(
            logger=self.logger,
            target=dataset_config.target_column,
            known_categorical=dataset_config.known_categorical,
            known_numeric=dataset_config.known_numeric,
            train_fraction=dataset_config.train_fraction,
            val_fraction=dataset_config.val_fraction,
        )
        self.stored: StoredModel | None = None

    @property
    def is_ready(self) -> bool:
        return self.stored is not None and self.dataset.is_prepared

    def load(self) -> None:
        """Load the model, then load and prepare the dataset to match it.

        Raises:
            FileNotFoundError: If the model or the source file doesn't exist.
            ValueError: If the model does not fit the dataset's encoded features.
        """
        try:
            stored = self.store.load(self.training_config.model_key)
            self.dataset.load_file(self.dataset_config.source_path, self.dataset_config.subset)
            self.dataset.prepare(
                scaler_kind=stored.metadata.scaler,
                seed=stored.metadata.random_seed,
                fit_scope=stored.metadata.fit_scope,
            )
            self.store.check_compatible(stored, self.dataset, self.training_config.model_key)
        except Exception as e:
            self.logger.error(f"Failed to load predictor: {e}")
            raise
        self.stored = stored

    def _require_ready(self) -> StoredModel:
        if self.stored is None or not self.dataset.is_prepared:
            raise ValueError("Predictor must be loaded before use")
        return self.stored

    def evaluate(
        self,
        raw_filters: Optional[Mapping[str, Mapping[str, Any]]] = None,
        partition: str = "test",
        mode: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> PartitionEvaluation:
        """Evaluate the stored model on a partition, filtered when filters are given.

        Args:
            raw_filters: Plain filter mapping; None or empty evaluates every row.
            partition: Partition to evaluate.
            mode: "reg" or "bin"; defaults to the configured eval mode.
            threshold: Threshold for "bin" mode; defaults to the configured one.

        Raises:
            FilterError: If the filter mapping is malformed.
            EmptySelectionError: If the partition is empty or nothing matches.
        """
        stored = self._require_ready()
        mode = mode or self.training_config.eval_mode
        threshold = self.training_config.threshold if threshold is None else threshold

        if raw_filters:
            # Features without a filter keep the defaults of untouched controls
            descriptor = {
                **default_descriptor(self.dataset.schema),
                **parse_filter_descriptor(raw_filters, self.dataset.schema, self.logger),
            }
            return evaluate_filtered(
                stored.model, self.dataset, descriptor, partition, mode, threshold, self.logger
            )
        return evaluate_partition(stored.model, self.dataset, partition, mode, threshold, self.logger)

    def predict(self, records: Sequence[Mapping[str, Any]]) -> np.ndarray:
        """Score raw records with shape (n, 1).

        Raises:
            EncodingError: If a record lacks a feature column.
        """
        stored = self._require_ready()
        self.logger.info(f"Making predictions on {len(records)} records")
        X = self.dataset.encode_records(records)
        return stored.model.predict(X)

    def model_info(self) -> Dict[str, Any]:
        stored = self._require_ready()
        return {
            "model_key": self.training_config.model_key,
            "model_kind": stored.model.kind,
            "input_length": stored.model.input_length,
            "scaler": stored.metadata.scaler,
            "fit_scope": stored.metadata.fit_scope,
            "random_seed": stored.metadata.random_seed,
        }
