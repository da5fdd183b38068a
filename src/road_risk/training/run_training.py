"""Command-line script to run the model training pipeline."""

import argparse
import sys

from road_risk.training.config import load_training_config
from road_risk.training.training_pipeline import TrainingPipeline
from road_risk.utils.logging_utils import setup_logger


def main(argv: list[str] | None = None) -> int:
    """Main entry point for training script.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    parser = argparse.ArgumentParser(description="Train the accident risk model")
    parser.add_argument(
        "--config",
        type=str,
        default="confs/train.yaml",
        help="Path to configuration YAML file (default: confs/train.yaml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the log level from the configuration",
    )

    args = parser.parse_args(argv)

    # Load configuration from YAML file
    try:
        job_name, dataset_config, model_config, training_config = load_training_config(
            args.config
        )
        print(f"\nLoaded configuration from: {args.config}")
        print(f"Experiment name: {job_name}")

    except Exception as e:
        print(f"\nError loading configuration: {e}", file=sys.stderr)
        return 1

    # Run training pipeline
    try:
        logger = setup_logger(
            "training_pipeline",
            args.log_level or dataset_config.log_level,
            log_file="logs/training.log",
        )
        pipeline = TrainingPipeline(
            job_name=job_name,
            dataset_config=dataset_config,
            model_config=model_config,
            training_config=training_config,
            logger=logger,
        )

        _, metrics = pipeline.run()

        print("\n" + "=" * 80)
        print("TRAINING COMPLETED SUCCESSFULLY!")
        print("=" * 80)
        print(f"\nModel: {model_config.kind}")
        print(f"Source data: {dataset_config.source_path}")
        print(f"Split sizes: {pipeline.dataset.split.sizes()}")
        print("\nEvaluation Metrics:")
        print("-" * 40)
        for metric_name, metric_value in metrics.items():
            print(f"  {metric_name:.<30} {metric_value:.4f}")
        print(f"\nModel saved to: {pipeline.store.path_for(training_config.model_key)}")
        if training_config.track_with_mlflow:
            print(f"MLflow experiment: {job_name}")
        print("\nLogs saved to: logs/training.log")
        print("=" * 80)

        return 0

    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        print("\nTraining failed. Check logs/training.log for details.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
