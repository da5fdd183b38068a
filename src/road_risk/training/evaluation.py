"""Evaluation of a trained risk model on dataset partitions."""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from road_risk.exceptions import EmptySelectionError
from road_risk.preprocessing.dataset import RoadRiskDataset
from road_risk.preprocessing.filters import FilterDescriptor
from road_risk.training.risk_model import RiskRegressor
from road_risk.utils.model_utils import EvaluationResult, compute_metrics


@dataclass
class PartitionEvaluation:
    """Metrics and predictions for the evaluated rows of one partition.

    Attributes:
        partition: Partition name.
        result: Computed metrics and residuals.
        y_true: True targets, shape (n, 1).
        y_pred: Predictions, shape (n, 1).
        filtered: Whether a filter descriptor selected the rows.
        partition_size: Rows in the partition before filtering.
    """

    partition: str
    result: EvaluationResult
    y_true: np.ndarray
    y_pred: np.ndarray
    filtered: bool = False
    partition_size: int = 0

    @property
    def label(self) -> str:
        return f"{self.partition} (filtered)" if self.filtered else self.partition


def evaluate_partition(
    model: RiskRegressor,
    dataset: RoadRiskDataset,
    partition: str = "test",
    mode: str = "reg",
    threshold: float = 0.5,
    logger: Optional[logging.Logger] = None,
) -> PartitionEvaluation:
    """Evaluate the model on every row of a partition.

    Raises:
        EmptySelectionError: If the partition has no rows.
    """
    logger = logger or logging.getLogger(__name__)
    X, y = dataset.tensors_for(partition)
    if len(X) == 0:
        raise EmptySelectionError(
            f"The {partition} partition is empty", partition=partition, partition_size=0
        )

    logger.info(f"Evaluating on {len(X)} rows of the {partition} partition")
    y_pred = model.predict(X)
    return PartitionEvaluation(
        partition=partition,
        result=compute_metrics(y, y_pred, mode, threshold),
        y_true=y,
        y_pred=y_pred,
        filtered=False,
        partition_size=len(X),
    )


def evaluate_filtered(
    model: RiskRegressor,
    dataset: RoadRiskDataset,
    descriptor: FilterDescriptor,
    partition: str = "test",
    mode: str = "reg",
    threshold: float = 0.5,
    logger: Optional[logging.Logger] = None,
) -> PartitionEvaluation:
    """Evaluate the model on the rows of a partition that match a descriptor.

    Raises:
        EmptySelectionError: If the partition is empty or no row matches, rather
            than reporting metrics over zero rows.
    """
    logger = logger or logging.getLogger(__name__)
    selection = dataset.filtered_tensors_for(partition, descriptor).require_matches()

    logger.info(
        f"Evaluating on {selection.match_count}/{selection.partition_size} filtered rows "
        f"of the {partition} partition"
    )
    y_pred = model.predict(selection.X)
    return PartitionEvaluation(
        partition=partition,
        result=compute_metrics(selection.y, y_pred, mode, threshold),
        y_true=selection.y,
        y_pred=y_pred,
        filtered=True,
        partition_size=selection.partition_size,
    )
