"""Regression models predicting accident risk from encoded feature matrices."""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.neural_network import MLPRegressor
from xgboost import XGBRegressor

from road_risk.entities.configs import SUPPORTED_MODELS

MLP_HIDDEN_LAYERS = (128, 64)
XGB_TREES_PER_EPOCH = 10


@dataclass(frozen=True)
class EpochLog:
    """Training and validation metrics after one epoch.

    Validation fields are None when no validation rows were given.
    """

    epoch: int
    epochs: int
    loss: float
    mae: float
    r2: float
    val_loss: Optional[float] = None
    val_mae: Optional[float] = None
    val_r2: Optional[float] = None

    def __str__(self) -> str:
        def fmt(value: Optional[float]) -> str:
            return f"{value:.6f}" if value is not None else "n/a"

        return (
            f"ep {self.epoch}/{self.epochs}  loss={self.loss:.6f}  val_loss={fmt(self.val_loss)}  "
            f"mae={self.mae:.6f}  val_mae={fmt(self.val_mae)}  "
            f"r2={self.r2:.6f}  val_r2={fmt(self.val_r2)}"
        )


def _score(y_true: np.ndarray, y_pred: np.ndarray) -> tuple[float, float, float]:
    """Return (mse, mae, r2); r2 is 0.0 when it is undefined."""
    y_true = y_true.ravel()
    y_pred = y_pred.ravel()
    mse = float(mean_squared_error(y_true, y_pred))
    mae = float(mean_absolute_error(y_true, y_pred))
    r2 = float(r2_score(y_true, y_pred)) if y_true.size > 1 and np.ptp(y_true) > 0 else 0.0
    return mse, mae, r2


class RiskRegressor:
    """Common training loop around an incrementally trainable estimator.

    Subclasses implement ``_fit_epoch`` and ``_predict_raw``. Predictions are
    clipped to [0, 1], the range of the risk target.

    Attributes:
        kind: Model family name.
        input_length: Number of encoded feature columns the model accepts.
        learning_rate: Optimiser learning rate.
        estimator: Underlying scikit-learn compatible estimator.
        is_fitted: Whether at least one epoch has run.
    """

    kind = ""

    def __init__(
        self,
        input_length: int,
        learning_rate: float = 0.001,
        logger: Optional[logging.Logger] = None,
        **params: Any,
    ) -> None:
        if input_length <= 0:
            raise ValueError(f"input_length must be positive, got {input_length}")
        self.input_length = input_length
        self.learning_rate = learning_rate
        self.params = params
        self.logger = logger or logging.getLogger(__name__)
        self.estimator = self._build_estimator()
        self.is_fitted = False

    def __getstate__(self) -> dict:
        # Loggers are process-local and are not stored with the model
        state = self.__dict__.copy()
        state.pop("logger", None)
        return state

    def __setstate__(self, state: dict) -> None:
        self.__dict__.update(state)
        self.logger = logging.getLogger(__name__)

    def _build_estimator(self) -> Any:
        raise NotImplementedError

    def _fit_epoch(self, X: np.ndarray, y: np.ndarray, batch_size: int) -> None:
        raise NotImplementedError

    def _predict_raw(self, X: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _check_width(self, X: np.ndarray) -> None:
        if X.ndim != 2 or X.shape[1] != self.input_length:
            raise ValueError(
                f"Expected a matrix with {self.input_length} feature columns, got shape {X.shape}"
            )

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        validation_data: Optional[tuple[np.ndarray, np.ndarray]] = None,
        epochs: int = 10,
        batch_size: int = 256,
    ) -> Iterator[EpochLog]:
        """Train for ``epochs`` passes, yielding metrics after each one.

        Args:
            X: Encoded train features.
            y: Train targets, shape (n,) or (n, 1).
            validation_data: Optional ``(X_val, y_val)``; skipped when empty.
            epochs: Number of passes over the train rows.
            batch_size: Mini-batch size, where the estimator uses one.

        Yields:
            EpochLog per finished epoch.

        Raises:
            ValueError: If there are no train rows or the feature width is wrong.
        """
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float).ravel()
        self._check_width(X)
        if X.shape[0] == 0:
            raise ValueError("Cannot fit on an empty train partition")

        X_val = y_val = None
        if validation_data is not None and len(validation_data[0]) > 0:
            X_val = np.asarray(validation_data[0], dtype=float)
            y_val = np.asarray(validation_data[1], dtype=float).ravel()
            self._check_width(X_val)

        self.logger.info(
            f"Training {self.kind} model on {X.shape[0]} rows x {X.shape[1]} features "
            f"for {epochs} epochs"
        )
        for epoch in range(1, epochs + 1):
            self._fit_epoch(X, y, batch_size)
            self.is_fitted = True

            loss, mae, r2 = _score(y, self._predict_raw(X))
            val_scores = (None, None, None)
            if X_val is not None:
                val_scores = _score(y_val, self._predict_raw(X_val))
            log = EpochLog(epoch, epochs, loss, mae, r2, *val_scores)
            self.logger.info(str(log))
            yield log

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Predict risk scores with shape (n, 1), clipped to [0, 1].

        Raises:
            ValueError: If the model is not fitted or the feature width is wrong.
        """
        if not self.is_fitted:
            raise ValueError("Model must be trained before making predictions")
        X = np.asarray(X, dtype=float)
        self._check_width(X)
        if X.shape[0] == 0:
            return np.empty((0, 1))
        return np.clip(self._predict_raw(X), 0.0, 1.0).reshape(-1, 1)


class MLPRiskRegressor(RiskRegressor):
    """Two hidden layers (128 and 64 relu units) trained with Adam on squared error."""

    kind = "mlp"

    def _build_estimator(self) -> MLPRegressor:
        params = {
            "hidden_layer_sizes": MLP_HIDDEN_LAYERS,
            "activation": "relu",
            "solver": "adam",
            "learning_rate_init": self.learning_rate,
            "random_state": 42,
        }
        params.update(self.params)
        return MLPRegressor(**params)

    def _fit_epoch(self, X: np.ndarray, y: np.ndarray, batch_size: int) -> None:
        # partial_fit makes exactly one pass over the rows
        self.estimator.set_params(batch_size=min(batch_size, X.shape[0]))
        self.estimator.partial_fit(X, y)

    def _predict_raw(self, X: np.ndarray) -> np.ndarray:
        return self.estimator.predict(X)


class XGBRiskRegressor(RiskRegressor):
    """Gradient boosted trees, growing a fixed number of trees per epoch."""

    kind = "xgboost"

    def _build_estimator(self) -> XGBRegressor:
        params = {
            "n_estimators": XGB_TREES_PER_EPOCH,
            "learning_rate": self.learning_rate,
            "objective": "reg:squarederror",
            "random_state": 42,
        }
        params.update(self.params)
        return XGBRegressor(**params)

    def _fit_epoch(self, X: np.ndarray, y: np.ndarray, batch_size: int) -> None:
        # Boosting continues from the current booster instead of starting over
        previous = self.estimator.get_booster() if self.is_fitted else None
        self.estimator.fit(X, y, xgb_model=previous)

    def _predict_raw(self, X: np.ndarray) -> np.ndarray:
        return self.estimator.predict(X)


_MODELS = {
    MLPRiskRegressor.kind: MLPRiskRegressor,
    XGBRiskRegressor.kind: XGBRiskRegressor,
}


def build_model(
    kind: str,
    input_length: int,
    learning_rate: float = 0.001,
    logger: Optional[logging.Logger] = None,
    **params: Any,
) -> RiskRegressor:
    """Create an untrained risk regressor.

    Args:
        kind: Model family, "mlp" or "xgboost".
        input_length: Number of encoded feature columns.
        learning_rate: Optimiser learning rate.
        logger: Logger for per-epoch lines.
        **params: Extra keyword arguments for the underlying estimator.

    Raises:
        ValueError: If the kind is unknown.
    """
    if kind not in _MODELS:
        raise ValueError(f"Unknown model kind: {kind}. Supported models: {SUPPORTED_MODELS}")
    return _MODELS[kind](input_length, learning_rate=learning_rate, logger=logger, **params)
