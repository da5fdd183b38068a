"""Unit tests for the model store."""

from unittest.mock import Mock

import numpy as np
import pytest

from road_risk.entities.configs import PreparationMetadata
from road_risk.preprocessing.dataset import RoadRiskDataset
from road_risk.serving.model_store import ModelStore, StoredModel
from road_risk.training.risk_model import build_model


@pytest.fixture
def prepared_dataset(road_csv_text, mock_logger):
    """Fixture providing a prepared dataset."""
    dataset = RoadRiskDataset(logger=mock_logger)
    dataset.load_and_infer_schema(road_csv_text)
    dataset.prepare()
    return dataset


@pytest.fixture
def trained_model(prepared_dataset, mock_logger):
    """Fixture providing a model trained for one epoch."""
    X, y = prepared_dataset.tensors_for("train")
    model = build_model("mlp", input_length=X.shape[1], logger=mock_logger)
    list(model.fit(X, y, epochs=1))
    return model


@pytest.fixture
def store(tmp_path, mock_logger):
    """Fixture providing a ModelStore rooted in a temporary directory."""
    return ModelStore(tmp_path / "models", mock_logger)


class TestModelStore:
    """Tests for ModelStore class."""

    def test_save_and_load(self, store, trained_model, prepared_dataset):
        """Test that a saved model predicts identically after loading."""
        metadata = prepared_dataset.metadata()
        X_test, _ = prepared_dataset.tensors_for("test")

        path = store.save(trained_model, metadata, key="risk-v1")
        loaded = store.load("risk-v1")

        assert path.name == "risk-v1.joblib"
        assert store.exists("risk-v1")
        assert isinstance(loaded, StoredModel)
        assert loaded.metadata == metadata
        np.testing.assert_allclose(loaded.model.predict(X_test), trained_model.predict(X_test))

    def test_save_replaces_previous(self, store, trained_model, prepared_dataset):
        """Test that saving under an existing key overwrites it."""
        store.save(trained_model, PreparationMetadata(n_rows=1), key="risk")
        store.save(trained_model, prepared_dataset.metadata(), key="risk")

        assert store.load("risk").metadata.n_rows == 60

    def test_load_missing(self, store):
        """Test error when nothing is stored under the key."""
        with pytest.raises(FileNotFoundError, match="Model file not found"):
            store.load("absent")

        assert not store.exists("absent")

    @pytest.mark.parametrize("key", ["", "a/b", "a\\b", ".", ".."])
    def test_invalid_keys(self, store, key):
        """Test that keys which could escape the store root are rejected."""
        with pytest.raises(ValueError, match="Invalid model key"):
            store.path_for(key)

    def test_compatible_model(self, store, trained_model, prepared_dataset):
        """Test that a model saved from the dataset passes the compatibility check."""
        store.save(trained_model, prepared_dataset.metadata())

        stored = store.load()
        store.check_compatible(stored, prepared_dataset)

        assert stored.model.input_length == len(prepared_dataset.feature_names)

    def test_incompatible_width(self, store, prepared_dataset):
        """Test that a model of a different width is rejected."""
        model = build_model("mlp", input_length=3)
        stored = StoredModel(model=model, metadata=PreparationMetadata())

        with pytest.raises(ValueError, match="expects 3 features"):
            store.check_compatible(stored, prepared_dataset)

    def test_renamed_features_warn(self, tmp_path, trained_model, prepared_dataset):
        """Test that same-width but differently named features only warn."""
        logger = Mock()
        store = ModelStore(tmp_path, logger)
        names = [f"col{i}" for i in range(len(prepared_dataset.feature_names))]
        stored = StoredModel(model=trained_model, metadata=PreparationMetadata(feature_names=names))

        store.check_compatible(stored, prepared_dataset)

        logger.warning.assert_called_once()

    def test_loaded_model_gets_a_logger(self, store, trained_model, prepared_dataset):
        """Test that the process-local logger is not stored with the model."""
        assert isinstance(trained_model.logger, Mock)
        store.save(trained_model, prepared_dataset.metadata())

        loaded = store.load()

        assert not isinstance(loaded.model.logger, Mock)
