"""Shared modelling utilities for model evaluation and logging."""

from dataclasses import dataclass, field
from typing import Dict, Optional

import mlflow
import numpy as np
from sklearn.metrics import accuracy_score, mean_absolute_error, mean_squared_error

from road_risk.constants import EVAL_MODES
from road_risk.exceptions import EmptySelectionError


@dataclass
class EvaluationResult:
    """Regression metrics for one set of predictions.

    Attributes:
        rmse: Root mean squared error.
        mae: Mean absolute error.
        r2: Coefficient of determination; 0.0 when the targets have no variance.
        accuracy: Share of rows on the same side of the threshold ("bin" mode only).
        residuals: ``y_pred - y_true`` per row.
        n_samples: Number of evaluated rows.
    """

    rmse: float
    mae: float
    r2: float
    accuracy: Optional[float] = None
    residuals: np.ndarray = field(default_factory=lambda: np.empty(0))
    n_samples: int = 0

    def as_dict(self, prefix: Optional[str] = None) -> Dict[str, float]:
        """Return the scalar metrics, optionally prefixed (e.g. "test")."""
        metrics = {"rmse": self.rmse, "mae": self.mae, "r2": self.r2}
        if self.accuracy is not None:
            metrics["accuracy"] = self.accuracy
        if prefix:
            return {f"{prefix}_{k}": v for k, v in metrics.items()}
        return metrics


def compute_metrics(
    y_true: np.ndarray, y_pred: np.ndarray, mode: str = "reg", threshold: float = 0.5
) -> EvaluationResult:
    """Calculate regression metrics and residuals.

    Args:
        y_true: True targets, shape (n,) or (n, 1).
        y_pred: Predicted targets, same length as ``y_true``.
        mode: "reg" for regression metrics only, "bin" to add accuracy after
            thresholding both sides at ``threshold``.
        threshold: Decision threshold for "bin" mode; values >= threshold are positive.

    Returns:
        EvaluationResult with metrics and residuals.

    Raises:
        EmptySelectionError: If there are no rows to evaluate.
        ValueError: If the inputs differ in length or the mode is unknown.
    """
    if mode not in EVAL_MODES:
        raise ValueError(f"mode must be one of {EVAL_MODES}, got {mode!r}")

    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    if y_true.size == 0:
        raise EmptySelectionError("No rows to evaluate")
    if y_true.size != y_pred.size:
        raise ValueError(
            f"y_true and y_pred differ in length: {y_true.size} != {y_pred.size}"
        )

    sse = float(((y_pred - y_true) ** 2).sum())
    sst = float(((y_true - y_true.mean()) ** 2).sum())

    accuracy = None
    if mode == "bin":
        accuracy = float(accuracy_score(y_true >= threshold, y_pred >= threshold))

    return EvaluationResult(
        rmse=float(np.sqrt(mean_squared_error(y_true, y_pred))),
        mae=float(mean_absolute_error(y_true, y_pred)),
        r2=1.0 - sse / sst if sst > 0 else 0.0,
        accuracy=accuracy,
        residuals=y_pred - y_true,
        n_samples=int(y_true.size),
    )


def format_metrics(result: EvaluationResult, threshold: float = 0.5) -> str:
    """One-line summary used in logs and CLI output."""
    line = f"RMSE={result.rmse:.6f}  MAE={result.mae:.6f}  R2={result.r2:.6f}"
    if result.accuracy is not None:
        line += f"  Acc@{threshold}={result.accuracy:.4f}"
    return line


def log_metrics_to_mlflow(metrics: Dict[str, float], prefix: Optional[str] = None) -> None:
    """Log metrics dictionary to MLflow.

    Args:
        metrics: Dictionary of metric_name: metric_value
        prefix: Optional prefix for metric names (e.g., "train_", "test_")
    """
    if prefix:
        metrics = {f"{prefix}{k}": v for k, v in metrics.items()}
    mlflow.log_metrics(metrics)


def log_split_sizes(split_sizes: Dict[str, int]) -> None:
    """Log partition sizes and shares to MLflow parameters.

    Args:
        split_sizes: Rows per partition, keyed by partition name.
    """
    total = sum(split_sizes.values())
    for name, count in split_sizes.items():
        mlflow.log_param(f"{name}_count", count)
        mlflow.log_param(f"{name}_pct", count / total * 100 if total else 0.0)
