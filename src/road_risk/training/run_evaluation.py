"""Command-line script to evaluate a stored model, optionally on filtered rows."""

import argparse
import sys

from road_risk.exceptions import EmptySelectionError
from road_risk.serving.predictor import RiskPredictor
from road_risk.training.config import load_filter_file, load_training_config
from road_risk.utils.logging_utils import setup_logger
from road_risk.utils.model_utils import format_metrics
from road_risk.utils.plotting_utils import create_evaluation_plots

EXIT_EMPTY_SELECTION = 2


def main(argv: list[str] | None = None) -> int:
    """Main entry point for evaluation script.

    Returns:
        Exit code (0 for success, 1 for failure, 2 when no rows were selected).
    """
    parser = argparse.ArgumentParser(description="Evaluate a stored accident risk model")
    parser.add_argument(
        "--config",
        type=str,
        default="confs/train.yaml",
        help="Path to configuration YAML file (default: confs/train.yaml)",
    )
    parser.add_argument(
        "--filters",
        type=str,
        default=None,
        help="Path to a filters YAML file; overrides training.filters_path",
    )
    parser.add_argument(
        "--partition",
        type=str,
        default="test",
        choices=["train", "val", "test"],
        help="Partition to evaluate (default: test)",
    )
    parser.add_argument(
        "--plots",
        action="store_true",
        help="Save residual and scatter plots to the configured output directory",
    )

    args = parser.parse_args(argv)

    try:
        _, dataset_config, _, training_config = load_training_config(args.config)
        filters_path = args.filters or training_config.filters_path
        raw_filters = load_filter_file(filters_path) if filters_path else None
    except Exception as e:
        print(f"\nError loading configuration: {e}", file=sys.stderr)
        return 1

    try:
        logger = setup_logger(
            "evaluation", dataset_config.log_level, log_file="logs/evaluation.log"
        )
        predictor = RiskPredictor(dataset_config, training_config, logger)
        predictor.load()
        evaluation = predictor.evaluate(raw_filters, partition=args.partition)

    except EmptySelectionError as e:
        print(f"\nEmpty selection: {e}", file=sys.stderr)
        return EXIT_EMPTY_SELECTION
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        print("\nEvaluation failed. Check logs/evaluation.log for details.")
        return 1

    print("\n" + "=" * 80)
    print(f"EVALUATION ON {evaluation.label.upper()}")
    print("=" * 80)
    info = predictor.model_info()
    print(
        f"Model: {info['model_key']} ({info['model_kind']}, {info['input_length']} features, "
        f"scaler={info['scaler']}, fit_scope={info['fit_scope']}, seed={info['random_seed']})"
    )
    print(f"Rows evaluated: {evaluation.result.n_samples}/{evaluation.partition_size}")
    print(format_metrics(evaluation.result, training_config.threshold))

    if args.plots:
        prefix = f"filtered_{evaluation.partition}" if evaluation.filtered else evaluation.partition
        paths = create_evaluation_plots(
            evaluation.y_true,
            evaluation.result,
            evaluation.y_pred,
            output_dir=training_config.output_dir,
            prefix=prefix,
        )
        print(f"Plots saved to: {', '.join(paths)}")
    print("=" * 80)

    return 0


if __name__ == "__main__":
    sys.exit(main())
