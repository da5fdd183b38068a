"""FastAPI application for risk evaluation and scoring."""

import logging
import math
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from road_risk.exceptions import EmptySelectionError, EncodingError, FilterError
from road_risk.serving.predictor import RiskPredictor
from road_risk.training.config import load_training_config
from road_risk.utils.config_utils import get_and_validate_dict, load_yaml_config
from road_risk.utils.plotting_utils import residual_histogram

DEPLOYMENT_CONFIG_ENV = "ROAD_RISK_DEPLOYMENT_CONFIG"
DEFAULT_DEPLOYMENT_CONFIG = "confs/deployment.yaml"

logger = logging.getLogger("road_risk_api")


# Pydantic models for request/response validation
class FeatureStatsModel(BaseModel):
    """Summary statistics of a numeric or boolean feature."""

    min: Optional[float] = None
    max: Optional[float] = None
    mean: float
    std: float
    count: int


class FeatureInfo(BaseModel):
    """Inferred description of one feature column."""

    name: str = Field(..., description="Column name")
    kind: str = Field(..., description="numeric, boolean or categorical")
    values: Optional[List[str]] = Field(None, description="Category values in encoding order")
    stats: Optional[FeatureStatsModel] = None


class SchemaResponse(BaseModel):
    """Response schema for the inferred dataset schema."""

    target: str
    features: List[FeatureInfo]
    encoded_width: int = Field(..., description="Number of encoded feature columns")


class FilterControlModel(BaseModel):
    """Description of the filter control for one feature."""

    feature: str
    kind: str
    default_min: Optional[float] = None
    default_max: Optional[float] = None
    options: List[str] = Field(default_factory=list)
    multiple: bool = False


class EvaluateRequest(BaseModel):
    """Input schema for evaluation requests.

    ``filters`` is keyed by feature name: ``{"min": .., "max": ..}`` for numeric
    features, ``{"mode": "any"|"True"|"False"}`` for boolean features and
    ``{"set": [..]}`` for categorical features. No filters evaluates every row.
    """

    filters: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    partition: Literal["train", "val", "test"] = "test"
    mode: Optional[Literal["reg", "bin"]] = None
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "filters": {
                    "speed_limit": {"min": 30, "max": 60},
                    "holiday": {"mode": "False"},
                    "weather": {"set": ["rainy", "foggy"]},
                },
                "partition": "test",
                "mode": "bin",
                "threshold": 0.5,
            }
        }
    )


class EvaluateResponse(BaseModel):
    """Output schema for evaluation responses."""

    partition: str
    filtered: bool
    n_samples: int = Field(..., description="Number of evaluated rows")
    partition_size: int = Field(..., description="Rows in the partition before filtering")
    rmse: float
    mae: float
    r2: float
    accuracy: Optional[float] = Field(None, description="Thresholded accuracy in 'bin' mode")
    residual_counts: List[int] = Field(..., description="Residual histogram counts")
    residual_bin_edges: List[float] = Field(..., description="Left edge of each histogram bin")


class PredictionInput(BaseModel):
    """Input schema for prediction requests: raw records keyed by column name."""

    records: List[Dict[str, Any]] = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "records": [
                    {
                        "road_type": "urban",
                        "num_lanes": 2,
                        "curvature": 0.06,
                        "speed_limit": 35,
                        "lighting": "daylight",
                        "weather": "rainy",
                        "road_signs_present": False,
                        "public_road": True,
                        "time_of_day": "afternoon",
                        "holiday": False,
                        "school_season": True,
                        "num_reported_accidents": 1,
                    }
                ]
            }
        }
    )


class PredictionOutput(BaseModel):
    """Output schema for prediction responses."""

    predictions: List[float] = Field(..., description="Risk score in [0, 1] per record")


class HealthResponse(BaseModel):
    """Response schema for health check."""

    status: str = Field(..., description="Service health status")
    model_loaded: bool = Field(..., description="Whether model and data are loaded")


# Global predictor instance
predictor: RiskPredictor | None = None


def load_config(config_path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Load deployment configuration.

    The path defaults to ``$ROAD_RISK_DEPLOYMENT_CONFIG`` or confs/deployment.yaml.

    Returns:
        Dictionary containing deployment configuration.
    """
    config_path = config_path or os.environ.get(DEPLOYMENT_CONFIG_ENV, DEFAULT_DEPLOYMENT_CONFIG)
    return load_yaml_config(config_path)


def initialize_predictor(config: Optional[Dict[str, Any]] = None) -> RiskPredictor:
    """Initialize and load the risk predictor.

    Returns:
        Loaded RiskPredictor instance.

    Raises:
        Exception: If configuration or model loading fails.
    """
    try:
        config = config if config is not None else load_config()
        model_dict = get_and_validate_dict(config, "model")
        training_config_path = model_dict.get("training_config", "confs/train.yaml")
        _, dataset_config, _, training_config = load_training_config(training_config_path)

        new_predictor = RiskPredictor(dataset_config, training_config, logger)
        new_predictor.load()
        return new_predictor

    except Exception as e:
        logger.error(f"Failed to initialize predictor: {e}")
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the model on application startup."""
    global predictor
    try:
        predictor = initialize_predictor()
        logger.info("Model loaded successfully on startup")
    except Exception as e:
        logger.error(f"Failed to load model on startup: {e}")
        # Don't fail startup, but predictor will be None
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Road Accident Risk API",
    description="API for evaluating and scoring road segment accident risk",
    version="1.0.0",
    lifespan=lifespan,
)


def _require_predictor() -> RiskPredictor:
    if predictor is None or not predictor.is_ready:
        raise HTTPException(status_code=503, detail="Model not loaded")
    return predictor


def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


@app.get("/", response_model=Dict[str, Any])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Road Accident Risk API",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "schema": "/schema",
            "filters": "/filters",
            "evaluate": "/evaluate",
            "predict": "/predict",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint.

    Returns:
        Service health status and model loading status.
    """
    loaded = predictor is not None and predictor.is_ready
    return HealthResponse(status="healthy" if loaded else "unhealthy", model_loaded=loaded)


@app.get("/schema", response_model=SchemaResponse)
async def get_schema():
    """Return the schema inferred from the source data."""
    current = _require_predictor()
    inferred = current.dataset.schema
    features = []
    for feature in inferred:
        stats = None
        if feature.stats is not None:
            stats = FeatureStatsModel(
                min=_finite_or_none(feature.stats.min),
                max=_finite_or_none(feature.stats.max),
                mean=feature.stats.mean,
                std=feature.stats.std,
                count=feature.stats.count,
            )
        features.append(
            FeatureInfo(
                name=feature.name,
                kind=feature.kind.value,
                values=list(feature.values) if feature.values is not None else None,
                stats=stats,
            )
        )
    return SchemaResponse(
        target=inferred.target,
        features=features,
        encoded_width=len(current.dataset.feature_names),
    )


@app.get("/filters", response_model=List[FilterControlModel])
async def filter_controls():
    """Describe one filter control per feature, in schema order."""
    current = _require_predictor()
    return [
        FilterControlModel(
            feature=control.feature,
            kind=control.kind.value,
            default_min=control.default_min,
            default_max=control.default_max,
            options=list(control.options),
            multiple=control.multiple,
        )
        for control in current.dataset.filter_controls()
    ]


@app.post("/evaluate", response_model=EvaluateResponse)
def evaluate(request: EvaluateRequest):
    """Evaluate the model on a partition, optionally restricted by filters.

    Raises:
        HTTPException: 400 for malformed filters, 422 when the selection is empty,
            503 if the model is not loaded.
    """
    current = _require_predictor()
    try:
        evaluation = current.evaluate(
            raw_filters=request.filters,
            partition=request.partition,
            mode=request.mode,
            threshold=request.threshold,
        )
    except FilterError as e:
        raise HTTPException(status_code=400, detail=f"Invalid filters: {str(e)}")
    except EmptySelectionError as e:
        raise HTTPException(status_code=422, detail=f"Empty selection: {str(e)}")

    result = evaluation.result
    counts, edges = residual_histogram(result.residuals)
    return EvaluateResponse(
        partition=evaluation.partition,
        filtered=evaluation.filtered,
        n_samples=result.n_samples,
        partition_size=evaluation.partition_size,
        rmse=result.rmse,
        mae=result.mae,
        r2=result.r2,
        accuracy=result.accuracy,
        residual_counts=[int(c) for c in counts],
        residual_bin_edges=[float(e) for e in edges],
    )


@app.post("/predict", response_model=PredictionOutput)
def predict(input_data: PredictionInput):
    """Score raw road segment records.

    Raises:
        HTTPException: If prediction fails or model is not loaded.
    """
    current = _require_predictor()
    try:
        predictions = current.predict(input_data.records)
        return PredictionOutput(predictions=[float(p) for p in predictions.ravel()])

    except EncodingError as e:
        raise HTTPException(status_code=400, detail=f"Invalid input: {str(e)}")
    except Exception as e:
        logger.error(f"Prediction error: {e}")
        raise HTTPException(status_code=500, detail=f"Prediction failed: {str(e)}")


def main() -> None:
    """Serve the API with uvicorn using the deployment configuration."""
    import uvicorn

    config = load_config()
    api_config = config.get("api", {})
    host = api_config.get("host", "0.0.0.0")
    port = api_config.get("port", 8000)

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
