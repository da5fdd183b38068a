"""Feature encoding and scaling over a shared column layout."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.preprocessing import OneHotEncoder

from road_risk.exceptions import EncodingError
from road_risk.preprocessing.parsing import to_finite_numbers
from road_risk.preprocessing.schema import FeatureKind, Schema

CATEGORY_SEPARATOR = "__"


class ScalerKind(str, Enum):
    MINMAX = "minmax"
    STANDARD = "standard"


class FitScope(str, Enum):
    """Rows the scaler statistics are fitted on.

    ``FULL`` fits on every row, including validation and test rows. This leaks
    their value ranges into training but matches how earlier experiments were
    prepared. ``TRAIN`` fits on the train partition only.
    """

    FULL = "full"
    TRAIN = "train"


@dataclass(frozen=True)
class ColumnBlock:
    """Contiguous encoded columns originating from one feature."""

    feature: str
    kind: FeatureKind
    start: int
    width: int
    categories: tuple[str, ...] = ()

    @property
    def stop(self) -> int:
        return self.start + self.width


@dataclass(frozen=True)
class ColumnLayout:
    """Encoded column order derived once from a schema.

    Numeric and boolean features take one column each; categorical features
    take one column per category. Encoder, scaler and any saved model all rely
    on this order.
    """

    blocks: tuple[ColumnBlock, ...]

    @classmethod
    def from_schema(cls, schema: Schema) -> "ColumnLayout":
        blocks = []
        offset = 0
        for feature in schema:
            if feature.kind is FeatureKind.CATEGORICAL:
                categories = tuple(str(v) for v in feature.values or ())
                blocks.append(
                    ColumnBlock(feature.name, feature.kind, offset, len(categories), categories)
                )
                offset += len(categories)
            else:
                blocks.append(ColumnBlock(feature.name, feature.kind, offset, 1))
                offset += 1
        return cls(blocks=tuple(blocks))

    @property
    def width(self) -> int:
        return self.blocks[-1].stop if self.blocks else 0

    @property
    def feature_names(self) -> list[str]:
        names = []
        for block in self.blocks:
            if block.kind is FeatureKind.CATEGORICAL:
                names.extend(f"{block.feature}{CATEGORY_SEPARATOR}{c}" for c in block.categories)
            else:
                names.append(block.feature)
        return names

    @property
    def numeric_columns(self) -> list[int]:
        """Encoded positions of numeric and boolean features."""
        return [b.start for b in self.blocks if b.kind is not FeatureKind.CATEGORICAL]

    @property
    def encoders(self) -> dict[str, list[str]]:
        """Category order of every categorical feature."""
        return {
            b.feature: list(b.categories) for b in self.blocks if b.kind is FeatureKind.CATEGORICAL
        }


class FeatureEncoder:
    """Turns string rows into a numeric matrix following a ColumnLayout."""

    def __init__(self, layout: ColumnLayout, logger: logging.Logger) -> None:
        """Initialize FeatureEncoder.

        Args:
            layout: Column layout to encode into.
            logger: Logger instance for tracking operations.
        """
        self.layout = layout
        self.logger = logger
        self.one_hot = {
            block.feature: _fit_one_hot(block.categories)
            for block in layout.blocks
            if block.kind is FeatureKind.CATEGORICAL and block.width
        }

    def encode(self, rows: pd.DataFrame) -> np.ndarray:
        """Encode rows into an ``(n_rows, layout.width)`` float matrix.

        Numeric cells that do not parse are left as NaN for the scaler to resolve.

        Raises:
            EncodingError: If a feature column of the layout is missing.
        """
        missing = [b.feature for b in self.layout.blocks if b.feature not in rows.columns]
        if missing:
            raise EncodingError(f"Rows are missing feature columns: {missing}")

        X = np.zeros((len(rows), self.layout.width), dtype=float)
        for block in self.layout.blocks:
            column = rows[block.feature]
            if block.kind is FeatureKind.NUMERIC:
                X[:, block.start] = to_finite_numbers(column).to_numpy()
            elif block.kind is FeatureKind.BOOLEAN:
                X[:, block.start] = (column.astype(str) == "True").to_numpy(dtype=float)
            elif block.feature in self.one_hot and len(rows):
                values = column.astype(str).to_numpy(dtype=object).reshape(-1, 1)
                X[:, block.start : block.stop] = self.one_hot[block.feature].transform(values)

        self.logger.debug(f"Encoded {X.shape[0]} rows into {X.shape[1]} columns")
        return X

    def encode_target(self, rows: pd.DataFrame, target: str) -> np.ndarray:
        """Parse the target column into an ``(n_rows, 1)`` float matrix.

        Raises:
            EncodingError: If the target column is missing or any value is unparsable.
        """
        if target not in rows.columns:
            raise EncodingError(f'Target "{target}" not found in rows')

        y = to_finite_numbers(rows[target]).to_numpy()
        invalid = np.flatnonzero(~np.isfinite(y)).tolist()
        if invalid:
            preview = invalid[:10]
            raise EncodingError(
                f"{len(invalid)} rows have an unparsable {target} value (rows {preview}"
                f"{', ...' if len(invalid) > len(preview) else ''})",
                row_indices=invalid,
            )
        return y.reshape(-1, 1)


def _fit_one_hot(categories: Sequence[str]) -> OneHotEncoder:
    # Unseen values, including differently cased ones, encode as all zeros
    encoder = OneHotEncoder(
        categories=[list(categories)],
        handle_unknown="ignore",
        sparse_output=False,
        dtype=float,
    )
    return encoder.fit(np.asarray(categories, dtype=object).reshape(-1, 1))


@dataclass(frozen=True)
class ScalerStats:
    min: float
    max: float
    mean: float
    std: float


class Scaler:
    """Per-column normalisation of the numeric and boolean encoded columns.

    Attributes:
        kind: Normalisation formula.
        stats: Fitted statistics keyed by encoded column index.
    """

    def __init__(self, kind: ScalerKind | str = ScalerKind.MINMAX) -> None:
        self.kind = ScalerKind(kind)
        self.stats: dict[int, ScalerStats] = {}

    def fit(
        self, X: np.ndarray, layout: ColumnLayout, rows: Optional[Sequence[int]] = None
    ) -> "Scaler":
        """Fit statistics over finite values of every numeric column.

        Args:
            X: Encoded matrix.
            layout: Layout that produced ``X``.
            rows: Optional row positions to fit on; defaults to every row.
        """
        source = X if rows is None else X[np.asarray(rows, dtype=int)]
        stats = {}
        for c in layout.numeric_columns:
            col = source[:, c]
            col = col[np.isfinite(col)]
            if col.size == 0:
                stats[c] = ScalerStats(min=0.0, max=0.0, mean=0.0, std=0.0)
                continue
            mean = float(col.mean())
            std = float(np.sqrt(((col - mean) ** 2).sum() / max(1, col.size - 1)))
            stats[c] = ScalerStats(
                min=float(col.min()), max=float(col.max()), mean=mean, std=std
            )
        self.stats = stats
        return self

    def transform(self, X: np.ndarray) -> np.ndarray:
        """Scale fitted columns of ``X`` in place; non-finite cells become 0.

        Returns:
            The same array, for chaining.
        """
        for c, st in self.stats.items():
            col = X[:, c]
            finite = np.isfinite(col)
            if self.kind is ScalerKind.MINMAX:
                scaled = (col - st.min) / ((st.max - st.min) or 1.0)
            else:
                scaled = (col - st.mean) / (st.std or 1.0)
            X[:, c] = np.where(finite, scaled, 0.0)
        return X
