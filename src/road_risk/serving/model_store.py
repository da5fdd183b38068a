"""Persistence of trained risk models keyed by string identifiers."""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import joblib

from road_risk.entities.configs import PreparationMetadata
from road_risk.preprocessing.dataset import RoadRiskDataset
from road_risk.training.risk_model import RiskRegressor

DEFAULT_MODEL_KEY = "accident-risk-model"
MODEL_SUFFIX = ".joblib"


@dataclass
class StoredModel:
    """A trained model with the preparation settings it was trained on."""

    model: RiskRegressor
    metadata: PreparationMetadata


class ModelStore:
    """Saves and loads models under a root directory, one file per key.

    Attributes:
        root: Directory holding the model files.
        logger: Logger instance for tracking operations.
    """

    def __init__(self, root: str | Path = "models", logger: Optional[logging.Logger] = None) -> None:
        self.root = Path(root)
        self.logger = logger or logging.getLogger(__name__)

    def path_for(self, key: str = DEFAULT_MODEL_KEY) -> Path:
        """Return the file path a key is stored at.

        Raises:
            ValueError: If the key is empty or contains path separators.
        """
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"Invalid model key: {key!r}")
        return self.root / f"{key}{MODEL_SUFFIX}"

    def exists(self, key: str = DEFAULT_MODEL_KEY) -> bool:
        return self.path_for(key).exists()

    def save(
        self, model: RiskRegressor, metadata: PreparationMetadata, key: str = DEFAULT_MODEL_KEY
    ) -> Path:
        """Serialize a model and its metadata, replacing any previous one under the key.

        Returns:
            Path of the written file.
        """
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump({"model": model, "metadata": asdict(metadata)}, path)
        self.logger.info(f"Model saved to {path}")
        return path

    def load(self, key: str = DEFAULT_MODEL_KEY) -> StoredModel:
        """Load a model and its metadata.

        Raises:
            FileNotFoundError: If nothing is stored under the key.
        """
        path = self.path_for(key)
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")

        self.logger.info(f"Loading model from {path}")
        payload = joblib.load(path)
        stored = StoredModel(
            model=payload["model"], metadata=PreparationMetadata(**payload["metadata"])
        )
        self.logger.info(
            f"Model loaded: {stored.model.kind}, {stored.model.input_length} input features"
        )
        return stored

    def check_compatible(
        self, stored: StoredModel, dataset: RoadRiskDataset, key: str = DEFAULT_MODEL_KEY
    ) -> None:
        """Raise ValueError if the model cannot consume the dataset's encoded features."""
        expected = len(dataset.feature_names)
        if stored.model.input_length != expected:
            raise ValueError(
                f"Model '{key}' expects {stored.model.input_length} features but the dataset "
                f"encodes {expected}. Prepare the dataset the way the model was trained."
            )
        if stored.metadata.feature_names and stored.metadata.feature_names != dataset.feature_names:
            self.logger.warning(
                f"Model '{key}' was trained on differently named features; "
                "predictions may be meaningless"
            )
