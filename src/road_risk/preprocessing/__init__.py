"""Data preparation pipeline for road segment accident risk regression."""

from road_risk.preprocessing.dataset import (
    FilteredTensors,
    PreparedMatrices,
    RoadRiskDataset,
    read_source_text,
    read_source_text_async,
)
from road_risk.preprocessing.encoding import ColumnLayout, FeatureEncoder, Scaler
from road_risk.preprocessing.filters import (
    BooleanFilter,
    CategoricalFilter,
    FilterEngine,
    NumericRange,
    parse_filter_descriptor,
)
from road_risk.preprocessing.parsing import parse_tabular_text
from road_risk.preprocessing.schema import FeatureKind, Schema, SchemaInferencer
from road_risk.preprocessing.splitting import Split, split_indices

__all__ = [
    "BooleanFilter",
    "CategoricalFilter",
    "ColumnLayout",
    "FeatureEncoder",
    "FeatureKind",
    "FilterEngine",
    "FilteredTensors",
    "NumericRange",
    "PreparedMatrices",
    "RoadRiskDataset",
    "Scaler",
    "Schema",
    "SchemaInferencer",
    "Split",
    "parse_filter_descriptor",
    "parse_tabular_text",
    "read_source_text",
    "read_source_text_async",
    "split_indices",
]
