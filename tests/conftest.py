"""Shared fixtures for the road risk test suite."""

from unittest.mock import Mock

import numpy as np
import pytest
import yaml

from road_risk.training.config import load_training_config
from road_risk.training.training_pipeline import TrainingPipeline

COLUMNS = [
    "id",
    "road_type",
    "num_lanes",
    "curvature",
    "speed_limit",
    "lighting",
    "weather",
    "road_signs_present",
    "public_road",
    "time_of_day",
    "holiday",
    "school_season",
    "num_reported_accidents",
    "accident_risk",
]


def make_road_csv(n_rows: int = 60, seed: int = 7) -> str:
    """Build comma-delimited road segment text with a realistic column set."""
    rng = np.random.RandomState(seed)
    lines = [",".join(COLUMNS)]
    for i in range(n_rows):
        curvature = round(float(rng.uniform(0, 1)), 3)
        speed = int(rng.choice([25, 35, 45, 60, 70]))
        risk = min(1.0, max(0.0, 0.1 + 0.5 * curvature + 0.004 * (speed - 25)))
        lines.append(
            ",".join(
                [
                    str(i),
                    str(rng.choice(["urban", "rural", "highway"])),
                    str(int(rng.randint(1, 5))),
                    str(curvature),
                    str(speed),
                    str(rng.choice(["daylight", "dim", "night"])),
                    str(rng.choice(["clear", "rainy", "foggy"])),
                    str(rng.choice(["True", "False"])),
                    str(rng.choice(["True", "False"])),
                    str(rng.choice(["morning", "afternoon", "evening"])),
                    str(rng.choice(["True", "False"])),
                    str(rng.choice(["True", "False"])),
                    str(int(rng.randint(0, 6))),
                    f"{risk:.3f}",
                ]
            )
        )
    return "\n".join(lines) + "\n"


@pytest.fixture
def mock_logger():
    """Fixture providing a mock logger."""
    return Mock()


@pytest.fixture
def road_csv_text():
    """Fixture providing 60 rows of road segment source text."""
    return make_road_csv()


@pytest.fixture
def road_csv_file(tmp_path, road_csv_text):
    """Fixture writing the road segment source text to disk."""
    path = tmp_path / "train.csv"
    path.write_text(road_csv_text, encoding="utf-8")
    return path


@pytest.fixture
def two_row_text():
    """Two-row source used for the end-to-end preparation scenario."""
    return (
        "road_type,num_lanes,curvature,speed_limit,accident_risk\n"
        "urban,2,0.1,50,0.2\n"
        "rural,1,0.9,90,0.8\n"
    )


@pytest.fixture
def training_yaml(tmp_path, road_csv_file):
    """Fixture writing a small training configuration into tmp_path."""
    config = {
        "job_name": "test_job",
        "data": {"source_path": str(road_csv_file), "random_state": 2025},
        "preprocessing": {"scaler": "standard", "fit_scope": "train"},
        "model": {"kind": "xgboost", "learning_rate": 0.3},
        "training": {
            "epochs": 2,
            "batch_size": 16,
            "model_dir": str(tmp_path / "models"),
            "output_dir": str(tmp_path / "outputs"),
        },
    }
    path = tmp_path / "train.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)
    return path


@pytest.fixture
def trained_config(training_yaml):
    """Fixture running the training pipeline once and returning its config path."""
    job_name, dataset_config, model_config, training_config = load_training_config(training_yaml)
    TrainingPipeline(job_name, dataset_config, model_config, training_config, Mock()).run()
    return training_yaml
