"""Unit tests for the RiskPredictor."""

from unittest.mock import patch

import numpy as np
import pytest

from road_risk.exceptions import EmptySelectionError, EncodingError, FilterError
from road_risk.preprocessing.filters import BooleanFilter, CategoricalFilter, NumericRange
from road_risk.serving.predictor import RiskPredictor
from road_risk.training.config import load_training_config


def make_predictor(config_path, logger):
    _, dataset_config, _, training_config = load_training_config(config_path)
    return RiskPredictor(dataset_config, training_config, logger)


@pytest.fixture
def predictor(trained_config, mock_logger):
    """Fixture providing a loaded predictor."""
    predictor = make_predictor(trained_config, mock_logger)
    predictor.load()
    return predictor


class TestRiskPredictorLoad:
    """Tests for RiskPredictor.load."""

    def test_load(self, predictor):
        """Test that loading prepares the dataset the way the model was trained."""
        assert predictor.is_ready
        assert predictor.dataset.scaler.kind.value == "standard"
        assert predictor.stored.metadata.fit_scope == "train"
        assert predictor.dataset.split.sizes() == {"train": 42, "val": 9, "test": 9}

    def test_load_missing_model(self, training_yaml, mock_logger):
        """Test error when no model has been trained yet."""
        predictor = make_predictor(training_yaml, mock_logger)

        with pytest.raises(FileNotFoundError, match="Model file not found"):
            predictor.load()

        assert not predictor.is_ready
        mock_logger.error.assert_called_once()

    def test_use_before_load(self, training_yaml, mock_logger):
        """Test that evaluation and prediction require a loaded predictor."""
        predictor = make_predictor(training_yaml, mock_logger)

        with pytest.raises(ValueError, match="must be loaded"):
            predictor.evaluate()
        with pytest.raises(ValueError, match="must be loaded"):
            predictor.predict([{}])

    def test_model_info(self, predictor):
        """Test the model description."""
        info = predictor.model_info()

        assert info["model_kind"] == "xgboost"
        assert info["model_key"] == "accident-risk-model"
        assert info["input_length"] == len(predictor.dataset.feature_names)
        assert info["random_seed"] == 2025


class TestRiskPredictorEvaluate:
    """Tests for RiskPredictor.evaluate."""

    def test_evaluate_test_partition(self, predictor):
        """Test unfiltered evaluation."""
        evaluation = predictor.evaluate()

        assert evaluation.partition == "test"
        assert not evaluation.filtered
        assert evaluation.result.n_samples == 9
        assert evaluation.result.accuracy is None

    def test_evaluate_binary_mode(self, predictor):
        """Test the mode and threshold overrides."""
        evaluation = predictor.evaluate(mode="bin", threshold=0.3)

        assert 0.0 <= evaluation.result.accuracy <= 1.0

    def test_evaluate_with_filters(self, predictor):
        """Test filtered evaluation from a plain mapping."""
        evaluation = predictor.evaluate({"speed_limit": {"min": 0, "max": 100}}, partition="val")

        assert evaluation.filtered
        assert evaluation.result.n_samples == 9

    def test_unfiltered_features_keep_control_defaults(self, predictor):
        """Test that features missing from the filters use the untouched control defaults."""
        with patch("road_risk.serving.predictor.evaluate_filtered") as mock_evaluate:
            predictor.evaluate({"weather": {"set": ["clear"]}})

        descriptor = mock_evaluate.call_args[0][2]
        stats = predictor.dataset.schema["curvature"].stats
        assert list(descriptor) == [f.name for f in predictor.dataset.schema]
        assert descriptor["weather"] == CategoricalFilter(frozenset({"clear"}))
        assert descriptor["holiday"] == BooleanFilter("any")
        assert descriptor["curvature"] == NumericRange(stats.min, stats.max)

    def test_evaluate_zero_matches(self, predictor):
        """Test that an empty selection is signalled."""
        with pytest.raises(EmptySelectionError, match="Relax filters"):
            predictor.evaluate({"speed_limit": {"min": 1000, "max": 2000}})

    def test_evaluate_malformed_filters(self, predictor):
        """Test that malformed filters raise FilterError."""
        with pytest.raises(FilterError):
            predictor.evaluate({"speed_limit": {"min": 70, "max": 30}})


class TestRiskPredictorPredict:
    """Tests for RiskPredictor.predict."""

    def test_predict_records(self, predictor):
        """Test scoring raw records."""
        records = [row for _, row in predictor.dataset.rows.head(3).iterrows()]

        predictions = predictor.predict([r.to_dict() for r in records])

        assert predictions.shape == (3, 1)
        np.testing.assert_allclose(
            predictions, predictor.stored.model.predict(predictor.dataset.X[:3])
        )

    def test_predict_incomplete_record(self, predictor):
        """Test that records lacking features raise EncodingError."""
        with pytest.raises(EncodingError):
            predictor.predict([{"road_type": "urban"}])
