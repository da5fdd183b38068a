"""Training pipeline for the accident risk model with optional MLflow tracking."""

import logging
from typing import Dict, Optional, Tuple

import mlflow

from road_risk.entities.configs import DatasetConfig, ModelConfig, TrainingConfig
from road_risk.exceptions import EmptySelectionError
from road_risk.preprocessing.dataset import RoadRiskDataset
from road_risk.preprocessing.filters import default_descriptor, parse_filter_descriptor
from road_risk.serving.model_store import ModelStore
from road_risk.training.config import load_filter_file
from road_risk.training.evaluation import (
    PartitionEvaluation,
    evaluate_filtered,
    evaluate_partition,
)
from road_risk.training.risk_model import EpochLog, RiskRegressor, build_model
from road_risk.utils.logging_utils import ProgressCallback, setup_logger
from road_risk.utils.model_utils import log_metrics_to_mlflow, log_split_sizes
from road_risk.utils.plotting_utils import create_evaluation_plots, render_metrics


class TrainingPipeline:
    """Pipeline for preparing road segment data, training a risk model and evaluating it.

    This class handles the complete training workflow including:
    - Loading the source file and inferring its schema
    - Encoding, scaling and splitting into train/validation/test
    - Training the model epoch by epoch
    - Evaluating on the test partition, optionally through a filter descriptor
    - Saving the model and, when enabled, logging the run to MLflow

    Attributes:
        job_name: Name of the training job for the MLflow experiment.
        dataset_config: Configuration for the source data and its preparation.
        model_config: Configuration for model kind and hyperparameters.
        training_config: Configuration for epochs, evaluation and outputs.
        dataset: Dataset aggregate owning rows, schema and matrices.
        model: Trained model, once ``train_model`` has run.
        history: Per-epoch metrics of the last training run.
        evaluations: Evaluation results keyed by label.
        metrics: Flat dictionary of evaluation metrics.
    """

    def __init__(
        self,
        job_name: str,
        dataset_config: DatasetConfig,
        model_config: ModelConfig,
        training_config: TrainingConfig,
        logger: Optional[logging.Logger] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Initialize the training pipeline.

        Args:
            job_name: Name for the MLflow experiment.
            dataset_config: Dataset configuration object.
            model_config: Model configuration object.
            training_config: Training configuration object.
            logger: Optional logger; defaults to console plus logs/training.log.
            on_progress: Optional ``(stage, message)`` callback for dataset status.
        """
        self.job_name = job_name
        self.dataset_config = dataset_config
        self.model_config = model_config
        self.training_config = training_config
        self.logger = logger or setup_logger(
            "training_pipeline", dataset_config.log_level, log_file="logs/training.log"
        )

        self.dataset = RoadRiskDataset(
            logger=self.logger,
            target=dataset_config.target_column,
            known_categorical=dataset_config.known_categorical,
            known_numeric=dataset_config.known_numeric,
            train_fraction=dataset_config.train_fraction,
            val_fraction=dataset_config.val_fraction,
            on_progress=on_progress,
        )
        self.store = ModelStore(training_config.model_dir, self.logger)
        self.model: RiskRegressor | None = None
        self.history: list[EpochLog] = []
        self.evaluations: Dict[str, PartitionEvaluation] = {}
        self.metrics: Dict[str, float] = {}
        self.plot_paths: list[str] = []

        if training_config.track_with_mlflow:
            mlflow.set_experiment(self.job_name)
        self.logger.info(f"Initialized training pipeline for experiment: {self.job_name}")

    def load_data(self) -> None:
        """Load the source file, subsample if configured, and infer the schema.

        Raises:
            FileNotFoundError: If the source file doesn't exist.
            FormatError: If the source text is malformed.
            SchemaError: If the target column is missing.
        """
        self.dataset.load_file(self.dataset_config.source_path, self.dataset_config.subset)

    def prepare_data(self) -> None:
        """Encode, scale and split the loaded rows."""
        self.dataset.prepare(
            scaler_kind=self.dataset_config.scaler,
            seed=self.dataset_config.random_seed,
            fit_scope=self.dataset_config.fit_scope,
        )

    def train_model(self) -> RiskRegressor:
        """Build the configured model and train it on the train partition.

        Returns:
            Trained model.
        """
        X_train, y_train = self.dataset.tensors_for("train")
        X_val, y_val = self.dataset.tensors_for("val")

        self.logger.info(f"Training {self.model_config.kind} model...")
        model = build_model(
            self.model_config.kind,
            input_length=X_train.shape[1],
            learning_rate=self.model_config.learning_rate,
            logger=self.logger,
            **self.model_config.parameters,
        )
        self.history = list(
            model.fit(
                X_train,
                y_train,
                validation_data=(X_val, y_val),
                epochs=self.training_config.epochs,
                batch_size=self.training_config.batch_size,
            )
        )
        self.model = model
        self.logger.info("Model training completed successfully")
        return model

    def evaluate_model(self) -> Dict[str, float]:
        """Evaluate on the test partition and, if configured, on its filtered rows.

        An empty filtered selection is reported and skipped; the unfiltered test
        metrics are still returned.

        Returns:
            Dictionary of evaluation metrics.
        """
        if self.model is None:
            raise ValueError("Model must be trained before evaluation")

        mode = self.training_config.eval_mode
        threshold = self.training_config.threshold

        evaluation = evaluate_partition(self.model, self.dataset, "test", mode, threshold, self.logger)
        self.evaluations["test"] = evaluation
        render_metrics(evaluation.result, self.logger, "Eval test", threshold)
        self.metrics = evaluation.result.as_dict(prefix="test")

        if self.training_config.filters_path is not None:
            raw = load_filter_file(self.training_config.filters_path)
            descriptor = {
                **default_descriptor(self.dataset.schema),
                **parse_filter_descriptor(raw, self.dataset.schema, self.logger),
            }
            try:
                filtered = evaluate_filtered(
                    self.model, self.dataset, descriptor, "test", mode, threshold, self.logger
                )
            except EmptySelectionError as e:
                self.logger.warning(f"Skipping filtered evaluation: {e}")
            else:
                self.evaluations["filtered_test"] = filtered
                render_metrics(filtered.result, self.logger, "Eval filtered test", threshold)
                self.metrics.update(filtered.result.as_dict(prefix="filtered_test"))

        return self.metrics

    def create_plots(self) -> list[str]:
        """Save residual histograms and prediction scatter plots per evaluation."""
        paths = []
        for name, evaluation in self.evaluations.items():
            paths.extend(
                create_evaluation_plots(
                    evaluation.y_true,
                    evaluation.result,
                    evaluation.y_pred,
                    output_dir=self.training_config.output_dir,
                    prefix=name,
                )
            )
        self.plot_paths = paths
        self.logger.info(f"Saved {len(paths)} plots to {self.training_config.output_dir}")
        return paths

    def save_model(self) -> None:
        if self.model is None:
            raise ValueError("Model must be trained before saving")
        self.store.save(self.model, self.dataset.metadata(), self.training_config.model_key)

    def log_to_mlflow(self) -> None:
        """Log parameters, per-epoch metrics, evaluation metrics and artifacts to MLflow."""
        self.logger.info("Logging to MLflow...")

        with mlflow.start_run():
            # Log parameters
            mlflow.log_params(self.model_config.parameters)
            mlflow.log_param("model_kind", self.model_config.kind)
            mlflow.log_param("learning_rate", self.model_config.learning_rate)
            mlflow.log_param("epochs", self.training_config.epochs)
            mlflow.log_param("batch_size", self.training_config.batch_size)
            mlflow.log_param("scaler", self.dataset_config.scaler)
            mlflow.log_param("fit_scope", self.dataset_config.fit_scope)
            mlflow.log_param("random_seed", self.dataset_config.random_seed)
            mlflow.log_param("n_features", len(self.dataset.feature_names))
            log_split_sizes(self.dataset.split.sizes())

            # Log per-epoch metrics
            for log in self.history:
                epoch_metrics = {"loss": log.loss, "mae": log.mae, "r2": log.r2}
                if log.val_loss is not None:
                    epoch_metrics.update(
                        {"val_loss": log.val_loss, "val_mae": log.val_mae, "val_r2": log.val_r2}
                    )
                mlflow.log_metrics(epoch_metrics, step=log.epoch)

            # Log evaluation metrics
            log_metrics_to_mlflow(self.metrics)

            # Log plots and the stored model
            for path in self.plot_paths:
                mlflow.log_artifact(path, artifact_path="plots")
            model_path = self.store.path_for(self.training_config.model_key)
            if model_path.exists():
                mlflow.log_artifact(str(model_path), artifact_path="model")

            self.logger.info("Successfully logged to MLflow")

    def run(self) -> Tuple[RiskRegressor, Dict[str, float]]:
        """Execute the complete training pipeline.

        Returns:
            Tuple of (trained model, evaluation metrics).
        """
        self.logger.info("=" * 80)
        self.logger.info(f"Starting training pipeline: {self.job_name}")
        self.logger.info("=" * 80)

        try:
            # Load and prepare data
            self.load_data()
            self.prepare_data()

            # Train model
            model = self.train_model()

            # Evaluate model
            metrics = self.evaluate_model()
            self.create_plots()

            # Persist model
            self.save_model()

            # Log to MLflow
            if self.training_config.track_with_mlflow:
                self.log_to_mlflow()

            self.logger.info("=" * 80)
            self.logger.info("Training pipeline completed successfully!")
            self.logger.info("=" * 80)

            return model, metrics

        except Exception as e:
            self.logger.error(f"Training pipeline failed: {e}")
            raise
