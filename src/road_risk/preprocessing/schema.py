"""Schema inference over parsed road segment rows."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

import numpy as np
import pandas as pd

from road_risk.constants import DEFAULT_TARGET, KNOWN_CATEGORICAL, KNOWN_NUMERIC
from road_risk.exceptions import SchemaError
from road_risk.preprocessing.parsing import to_finite_numbers

# Heuristic thresholds used when a column is in neither known list
SNIFF_SAMPLE_SIZE = 5000
NUMERIC_RATIO_THRESHOLD = 0.9
CATEGORICAL_MAX_DISTINCT = 10

MISSING_TOKENS = frozenset({"", "undefined"})
BOOLEAN_VALUES = ("True", "False")


class FeatureKind(str, Enum):
    """Encoding family of a feature column."""

    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    CATEGORICAL = "categorical"


@dataclass(frozen=True)
class FeatureStats:
    """Summary statistics over the finite values of a column."""

    min: float
    max: float
    mean: float
    std: float
    count: int

    @classmethod
    def from_values(cls, values: Sequence[float] | np.ndarray) -> "FeatureStats":
        """Compute statistics, ignoring non-finite values.

        The standard deviation uses the sample denominator ``max(1, n - 1)``.
        """
        arr = np.asarray(values, dtype=float)
        arr = arr[np.isfinite(arr)]
        n = arr.size
        if n == 0:
            return cls(min=float("nan"), max=float("nan"), mean=0.0, std=0.0, count=0)
        mean = float(arr.mean())
        std = float(np.sqrt(((arr - mean) ** 2).sum() / max(1, n - 1)))
        return cls(min=float(arr.min()), max=float(arr.max()), mean=mean, std=std, count=int(n))


@dataclass(frozen=True)
class FeatureDescriptor:
    """Inferred description of one feature column.

    Attributes:
        name: Column name.
        kind: Encoding family.
        stats: Statistics for numeric and boolean features.
        values: Ordered category values for categorical and boolean features.
    """

    name: str
    kind: FeatureKind
    stats: FeatureStats | None = None
    values: tuple[str, ...] | None = None


@dataclass(frozen=True)
class Schema:
    """Feature descriptors in column order plus the target column name.

    ``features`` is exposed as a read-only mapping.
    """

    features: Mapping[str, FeatureDescriptor] = field(default_factory=dict)
    target: str = DEFAULT_TARGET

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))

    def __iter__(self):
        return iter(self.features.values())

    def __len__(self) -> int:
        return len(self.features)

    def __contains__(self, name: object) -> bool:
        return name in self.features

    def __getitem__(self, name: str) -> FeatureDescriptor:
        return self.features[name]

    def names_of_kind(self, kind: FeatureKind) -> list[str]:
        """Return the feature names of a given kind, in schema order."""
        return [f.name for f in self if f.kind is kind]


def infer_feature_kind(
    name: str,
    sample_values: Sequence[str],
    known_categorical: Iterable[str] = KNOWN_CATEGORICAL,
    known_numeric: Iterable[str] = KNOWN_NUMERIC,
) -> FeatureKind:
    """Classify a column as numeric or categorical.

    Known name lists take precedence (categorical first). Otherwise the sample is
    sniffed: a finite-numeric ratio above ``NUMERIC_RATIO_THRESHOLD`` means
    numeric, and at most ``CATEGORICAL_MAX_DISTINCT`` distinct values means
    categorical, which wins when both hold. A column matching neither rule stays
    numeric.

    Boolean detection needs every observed value and happens afterwards in
    ``SchemaInferencer``.
    """
    if name in set(known_categorical):
        return FeatureKind.CATEGORICAL
    if name in set(known_numeric):
        return FeatureKind.NUMERIC

    sample = pd.Series(list(sample_values), dtype=object)
    if sample.empty:
        return FeatureKind.NUMERIC

    numeric_ratio = to_finite_numbers(sample).notna().mean()
    distinct = sample.astype(str).nunique()

    if distinct <= CATEGORICAL_MAX_DISTINCT:
        return FeatureKind.CATEGORICAL
    if numeric_ratio > NUMERIC_RATIO_THRESHOLD:
        return FeatureKind.NUMERIC
    # Neither rule applies: unparsable cells will encode as NaN and scale to 0
    return FeatureKind.NUMERIC


class SchemaInferencer:
    """Derives a Schema from parsed rows."""

    def __init__(
        self,
        logger: logging.Logger,
        target: str = DEFAULT_TARGET,
        known_categorical: Iterable[str] = KNOWN_CATEGORICAL,
        known_numeric: Iterable[str] = KNOWN_NUMERIC,
    ) -> None:
        """Initialize SchemaInferencer.

        Args:
            logger: Logger instance for tracking operations.
            target: Name of the target column, excluded from the features.
            known_categorical: Column names always treated as categorical.
            known_numeric: Column names always treated as numeric.
        """
        self.logger = logger
        self.target = target
        self.known_categorical = frozenset(known_categorical)
        self.known_numeric = frozenset(known_numeric)

    def infer(self, rows: pd.DataFrame) -> Schema:
        """Infer feature kinds, statistics and category values.

        Args:
            rows: String-valued rows as produced by ``parse_tabular_text``.

        Returns:
            Immutable Schema with features in column order.

        Raises:
            SchemaError: If there are no rows, the target column is missing, or no
                feature columns remain.
        """
        if rows.empty or self.target not in rows.columns:
            raise SchemaError(f'Target "{self.target}" not found in source data')

        columns = [c for c in rows.columns if c != self.target]
        if not columns:
            raise SchemaError("No feature columns found besides the target")

        sample = rows.head(min(SNIFF_SAMPLE_SIZE, len(rows)))
        features: dict[str, FeatureDescriptor] = {}
        for col in columns:
            kind = infer_feature_kind(
                col, sample[col].tolist(), self.known_categorical, self.known_numeric
            )
            if kind is FeatureKind.NUMERIC:
                features[col] = FeatureDescriptor(
                    name=col,
                    kind=kind,
                    stats=FeatureStats.from_values(to_finite_numbers(rows[col]).to_numpy()),
                )
            else:
                features[col] = self._describe_categorical(col, rows[col])
            self.logger.debug(f"Column {col} inferred as {features[col].kind.value}")

        schema = Schema(features=features, target=self.target)
        counts = {k.value: len(schema.names_of_kind(k)) for k in FeatureKind}
        self.logger.info(
            f"Schema inferred. Features: {len(features)} {counts}, target: {self.target}"
        )
        return schema

    def _describe_categorical(self, name: str, column: pd.Series) -> FeatureDescriptor:
        # pd.unique keeps order of first appearance
        values = [v for v in pd.unique(column.astype(str)) if v not in MISSING_TOKENS]
        if values and all(v.lower() in ("true", "false") for v in values):
            encoded = (column.astype(str) == "True").astype(float).to_numpy()
            return FeatureDescriptor(
                name=name,
                kind=FeatureKind.BOOLEAN,
                stats=FeatureStats.from_values(encoded),
                values=BOOLEAN_VALUES,
            )
        return FeatureDescriptor(name=name, kind=FeatureKind.CATEGORICAL, values=tuple(values))
