"""Loading of training configuration from YAML."""

from pathlib import Path

from road_risk.entities.configs import DatasetConfig, ModelConfig, TrainingConfig
from road_risk.preprocessing.config import build_dataset_config
from road_risk.utils.config_utils import get_and_validate_dict, load_yaml_config


def load_training_config(
    config_path: str | Path,
) -> tuple[str, DatasetConfig, ModelConfig, TrainingConfig]:
    """Load training configuration from YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Tuple of (job_name, DatasetConfig, ModelConfig, TrainingConfig) instances.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the YAML structure is invalid.
        yaml.YAMLError: If the YAML is malformed.
    """
    config_dict = load_yaml_config(config_path)

    # Extract job name
    job_name = config_dict.get("job_name", "accident_risk_training")

    # Load data and preprocessing configuration
    dataset_config = build_dataset_config(config_dict)

    # Load model configuration
    model_dict = get_and_validate_dict(config_dict, "model")
    model_config = ModelConfig(
        kind=model_dict.get("kind", "mlp"),
        learning_rate=model_dict.get("learning_rate", 0.001),
        parameters=model_dict.get("parameters", {}) or {},
    )

    # Load training configuration
    training_dict = get_and_validate_dict(config_dict, "training", required=False)
    filters_path = training_dict.get("filters_path")
    training_config = TrainingConfig(
        epochs=training_dict.get("epochs", 10),
        batch_size=training_dict.get("batch_size", 256),
        eval_mode=training_dict.get("eval_mode", "reg"),
        threshold=training_dict.get("threshold", 0.5),
        model_dir=Path(training_dict.get("model_dir", "models")),
        model_key=training_dict.get("model_key", "accident-risk-model"),
        output_dir=Path(training_dict.get("output_dir", "outputs")),
        track_with_mlflow=training_dict.get("track_with_mlflow", False),
        filters_path=Path(filters_path) if filters_path else None,
    )

    return job_name, dataset_config, model_config, training_config


def load_filter_file(filters_path: str | Path) -> dict:
    """Load the raw filter mapping from a YAML file.

    The file holds a ``filters`` section keyed by feature name, e.g.::

        filters:
          speed_limit: {min: 30, max: 60}
          holiday: {mode: "False"}
          weather: {set: [rainy, foggy]}

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the ``filters`` section is not a dictionary.
    """
    return get_and_validate_dict(load_yaml_config(filters_path), "filters")
