"""Plotting utilities for model evaluation."""

import logging
from pathlib import Path

import matplotlib
import numpy as np
import seaborn as sns

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from road_risk.utils.model_utils import EvaluationResult, format_metrics

HISTOGRAM_BINS = 30


def save_plot(output_path: str | Path, dpi: int = 150) -> str:
    """Save the current matplotlib figure to a file.

    Args:
        output_path: Path where the figure should be saved (e.g., "outputs/plot.png").
        dpi: Resolution in dots per inch. Default is 150.

    Returns:
        Path to the saved figure.
    """
    # Create output directory if it doesn't exist
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    # Save and close the figure
    plt.savefig(output_path, dpi=dpi, bbox_inches="tight")
    plt.close()

    return str(output_path)


def residual_histogram(
    residuals: np.ndarray, bins: int = HISTOGRAM_BINS
) -> tuple[np.ndarray, np.ndarray]:
    """Count residuals into equal-width bins between their min and max.

    A zero-width range uses a bin width of 1, and values on the upper edge fall
    into the last bin.

    Returns:
        Tuple of (counts, left bin edges), each of length ``bins``.
    """
    residuals = np.asarray(residuals, dtype=float).ravel()
    if residuals.size == 0:
        return np.zeros(bins, dtype=int), np.zeros(bins)

    lo, hi = float(residuals.min()), float(residuals.max())
    step = (hi - lo) / bins or 1.0
    positions = np.clip(np.floor((residuals - lo) / step).astype(int), 0, bins - 1)
    counts = np.bincount(positions, minlength=bins)
    edges = lo + np.arange(bins) * step
    return counts, edges


def plot_residual_histogram(
    residuals: np.ndarray,
    output_path: str | Path = "outputs/residuals.png",
    title: str = "Residuals",
) -> str:
    """Create and save a bar chart of residual counts.

    Args:
        residuals: ``y_pred - y_true`` per row.
        output_path: Where to write the figure.
        title: Title for the plot.

    Returns:
        Path to saved figure.
    """
    counts, edges = residual_histogram(residuals)
    width = edges[1] - edges[0] if len(edges) > 1 and edges[1] != edges[0] else 1.0

    plt.figure(figsize=(8, 5))
    plt.bar(edges, counts, width=width, align="edge", color="steelblue", edgecolor="white")
    plt.xlabel("y_pred - y_true")
    plt.ylabel("Residuals count")
    plt.title(title)
    plt.grid(axis="y", alpha=0.3)

    return save_plot(output_path)


def plot_prediction_scatter(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    output_path: str | Path = "outputs/prediction_scatter.png",
    title: str = "y_true vs y_pred",
) -> str:
    """Create and save a scatter plot of true against predicted risk.

    Both axes are fixed to [0, 1], the range of the risk target.

    Returns:
        Path to saved figure.
    """
    plt.figure(figsize=(6, 6))
    sns.scatterplot(x=np.ravel(y_true), y=np.ravel(y_pred), s=8, alpha=0.5, edgecolor=None)
    plt.plot([0, 1], [0, 1], color="gray", lw=1, linestyle="--")
    plt.xlim([0.0, 1.0])
    plt.ylim([0.0, 1.0])
    plt.xlabel("y_true")
    plt.ylabel("y_pred")
    plt.title(title)
    plt.grid(alpha=0.3)

    return save_plot(output_path)


def render_metrics(
    result: EvaluationResult, logger: logging.Logger, label: str = "Eval", threshold: float = 0.5
) -> None:
    """Log a metrics summary line."""
    logger.info(f"{label} → {format_metrics(result, threshold)}")


def create_evaluation_plots(
    y_true: np.ndarray,
    result: EvaluationResult,
    y_pred: np.ndarray,
    output_dir: str | Path = "outputs",
    prefix: str = "test",
) -> list[str]:
    """Create the residual histogram and prediction scatter plot for one evaluation.

    Args:
        y_true: True targets.
        result: Metrics computed for these predictions.
        y_pred: Predicted targets.
        output_dir: Directory to write figures into.
        prefix: File name prefix, e.g. the partition name.

    Returns:
        Paths of the saved figures.
    """
    output_dir = Path(output_dir)
    paths = [
        plot_residual_histogram(
            result.residuals, output_dir / f"{prefix}_residuals.png", title=f"Residuals ({prefix})"
        ),
        plot_prediction_scatter(
            y_true, y_pred, output_dir / f"{prefix}_scatter.png", title=f"y_true vs y_pred ({prefix})"
        ),
    ]

    return paths

