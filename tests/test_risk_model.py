"""Unit tests for the risk regression models."""

import numpy as np
import pytest

from road_risk.training.risk_model import (
    EpochLog,
    MLPRiskRegressor,
    XGBRiskRegressor,
    build_model,
)


@pytest.fixture
def regression_data():
    """Fixture providing a small learnable regression problem."""
    rng = np.random.RandomState(3)
    X = rng.uniform(0, 1, size=(80, 4))
    y = (0.6 * X[:, 0] + 0.3 * X[:, 1]).reshape(-1, 1)
    return X, y


@pytest.mark.parametrize("kind", ["mlp", "xgboost"])
class TestRiskRegressor:
    """Tests shared by every model kind."""

    def test_fit_yields_one_log_per_epoch(self, kind, regression_data, mock_logger):
        """Test that fitting reports metrics after each epoch."""
        X, y = regression_data
        model = build_model(kind, input_length=4, learning_rate=0.05, logger=mock_logger)

        logs = list(model.fit(X, y, validation_data=(X[:10], y[:10]), epochs=3, batch_size=16))

        assert [log.epoch for log in logs] == [1, 2, 3]
        assert all(log.epochs == 3 for log in logs)
        assert all(log.val_loss is not None for log in logs)
        assert model.is_fitted

    def test_predict_shape_and_range(self, kind, regression_data, mock_logger):
        """Test that predictions are a clipped column vector."""
        X, y = regression_data
        model = build_model(kind, input_length=4, learning_rate=0.05, logger=mock_logger)
        list(model.fit(X, y, epochs=2))

        predictions = model.predict(X)

        assert predictions.shape == (80, 1)
        assert predictions.min() >= 0.0
        assert predictions.max() <= 1.0

    def test_predict_empty(self, kind, regression_data, mock_logger):
        """Test that an empty matrix predicts an empty column."""
        X, y = regression_data
        model = build_model(kind, input_length=4, logger=mock_logger)
        list(model.fit(X, y, epochs=1))

        assert model.predict(np.empty((0, 4))).shape == (0, 1)

    def test_predict_before_fit_raises(self, kind, mock_logger):
        """Test that predicting with an untrained model raises ValueError."""
        model = build_model(kind, input_length=4, logger=mock_logger)

        with pytest.raises(ValueError, match="Model must be trained"):
            model.predict(np.zeros((1, 4)))

    def test_wrong_width_raises(self, kind, regression_data, mock_logger):
        """Test that a matrix of the wrong width is rejected."""
        X, y = regression_data
        model = build_model(kind, input_length=4, logger=mock_logger)
        list(model.fit(X, y, epochs=1))

        with pytest.raises(ValueError, match="4 feature columns"):
            model.predict(np.zeros((2, 3)))

    def test_empty_train_raises(self, kind, mock_logger):
        """Test that fitting without rows raises ValueError."""
        model = build_model(kind, input_length=4, logger=mock_logger)

        with pytest.raises(ValueError, match="empty train partition"):
            list(model.fit(np.empty((0, 4)), np.empty((0, 1))))


class TestMLPRiskRegressor:
    """Tests for MLPRiskRegressor class."""

    def test_architecture(self):
        """Test the hidden layer layout and learning rate."""
        model = MLPRiskRegressor(input_length=5, learning_rate=0.01)

        assert model.estimator.hidden_layer_sizes == (128, 64)
        assert model.estimator.learning_rate_init == 0.01

    def test_training_reduces_loss(self, regression_data):
        """Test that more epochs lower the training loss."""
        X, y = regression_data
        model = MLPRiskRegressor(input_length=4, learning_rate=0.01)

        logs = list(model.fit(X, y, epochs=30, batch_size=16))

        assert logs[-1].loss < logs[0].loss


class TestXGBRiskRegressor:
    """Tests for XGBRiskRegressor class."""

    def test_boosting_continues_across_epochs(self, regression_data):
        """Test that each epoch adds trees to the existing booster."""
        X, y = regression_data
        model = XGBRiskRegressor(input_length=4, learning_rate=0.3)

        list(model.fit(X, y, epochs=3))

        assert model.estimator.get_booster().num_boosted_rounds() == 30

    def test_extra_parameters(self):
        """Test that estimator parameters are passed through."""
        model = XGBRiskRegressor(input_length=4, max_depth=2)

        assert model.estimator.get_params()["max_depth"] == 2


class TestBuildModel:
    """Tests for build_model function."""

    def test_unknown_kind(self):
        """Test that an unknown model kind raises ValueError."""
        with pytest.raises(ValueError, match="Unknown model kind"):
            build_model("svm", input_length=3)

    def test_non_positive_width(self):
        """Test that a model needs at least one input column."""
        with pytest.raises(ValueError, match="input_length"):
            build_model("mlp", input_length=0)


class TestEpochLog:
    """Tests for EpochLog formatting."""

    def test_str_without_validation(self):
        """Test the epoch line when no validation rows exist."""
        line = str(EpochLog(epoch=2, epochs=5, loss=0.01, mae=0.05, r2=0.9))

        assert line.startswith("ep 2/5  loss=0.010000  val_loss=n/a")
        assert "r2=0.900000" in line
