"""Dataset aggregate owning raw rows, schema, encoded matrices and split."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd

from road_risk.constants import DEFAULT_SPLIT_SEED
from road_risk.entities.configs import PreparationMetadata, SubsetOptions
from road_risk.exceptions import EmptySelectionError
from road_risk.preprocessing.encoding import (
    ColumnLayout,
    FeatureEncoder,
    FitScope,
    Scaler,
    ScalerKind,
)
from road_risk.preprocessing.filters import (
    FilterControl,
    FilterDescriptor,
    FilterEngine,
    build_filter_controls,
)
from road_risk.preprocessing.parsing import parse_tabular_text, to_finite_numbers
from road_risk.preprocessing.schema import (
    DEFAULT_TARGET,
    KNOWN_CATEGORICAL,
    KNOWN_NUMERIC,
    Schema,
    SchemaInferencer,
)
from road_risk.preprocessing.splitting import (
    TRAIN_FRACTION,
    VAL_FRACTION,
    Split,
    sample_indices,
    split_indices,
)
from road_risk.utils.logging_utils import ProgressCallback, ProgressReporter


@dataclass(frozen=True)
class PreparedMatrices:
    """Summary returned by ``RoadRiskDataset.prepare``."""

    feature_names: list[str]
    matrix_shape: tuple[int, int]


@dataclass(frozen=True)
class FilteredTensors:
    """Rows of one partition that passed a filter descriptor.

    Attributes:
        X: Encoded features of the matching rows.
        y: Targets of the matching rows.
        match_count: Number of matching rows.
        partition: Partition the rows were selected from.
        partition_size: Number of rows in the partition before filtering.
        indices: Row positions of the matches in the full dataset.
    """

    X: np.ndarray
    y: np.ndarray
    match_count: int
    partition: str
    partition_size: int
    indices: tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.match_count == 0

    def require_matches(self) -> "FilteredTensors":
        """Return self, or raise if nothing matched.

        Raises:
            EmptySelectionError: If the partition is empty or no row matched.
        """
        if self.partition_size == 0:
            raise EmptySelectionError(
                f"The {self.partition} partition is empty",
                partition=self.partition,
                partition_size=0,
            )
        if self.match_count == 0:
            raise EmptySelectionError(
                f"No rows of the {self.partition} partition ({self.partition_size} rows) "
                "match the filters. Relax filters.",
                partition=self.partition,
                partition_size=self.partition_size,
            )
        return self


@dataclass(frozen=True)
class _LoadedState:
    rows: pd.DataFrame
    schema: Schema
    layout: ColumnLayout


@dataclass(frozen=True)
class _PreparedState:
    X: np.ndarray
    y: np.ndarray
    scaler: Scaler
    split: Split
    seed: int
    fit_scope: FitScope


def read_source_text(path: str | Path) -> str:
    """Read UTF-8 source text from disk, dropping a byte-order mark.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    return path.read_text(encoding="utf-8-sig")


async def read_source_text_async(path: str | Path) -> str:
    """Read source text without blocking the event loop."""
    return await asyncio.to_thread(read_source_text, path)


class RoadRiskDataset:
    """Owns the whole data preparation pipeline for one source.

    ``load_and_infer_schema`` parses rows and derives the schema once per load.
    ``prepare`` may be called repeatedly with different scaler kinds or seeds; it
    rebuilds the encoded matrices and the split without touching rows or schema.
    Both build into fresh objects and only replace the current state on success.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        target: str = DEFAULT_TARGET,
        known_categorical: Iterable[str] = KNOWN_CATEGORICAL,
        known_numeric: Iterable[str] = KNOWN_NUMERIC,
        train_fraction: float = TRAIN_FRACTION,
        val_fraction: float = VAL_FRACTION,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Initialize the dataset.

        Args:
            logger: Logger instance for tracking operations.
            target: Name of the target column.
            known_categorical: Columns always treated as categorical.
            known_numeric: Columns always treated as numeric.
            train_fraction: Share of rows in the train partition.
            val_fraction: Share of rows in the validation partition.
            on_progress: Optional ``(stage, message)`` callback for status updates.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.target = target
        self.known_categorical = tuple(known_categorical)
        self.known_numeric = tuple(known_numeric)
        self.train_fraction = train_fraction
        self.val_fraction = val_fraction
        self.progress = ProgressReporter(self.logger, on_progress)

        self._loaded: Optional[_LoadedState] = None
        self._prepared: Optional[_PreparedState] = None

    def load_and_infer_schema(self, text: str, subset: Optional[SubsetOptions] = None) -> Schema:
        """Parse source text, optionally subsample, and infer the schema.

        A successful load discards previously prepared matrices.

        Raises:
            FormatError: If the text is empty or malformed.
            SchemaError: If the target is missing or no features are found.
        """
        subset = subset or SubsetOptions()
        self.progress.start("load", "loading data…")
        try:
            rows = parse_tabular_text(text)
            self.logger.info(f"Parsed {len(rows)} rows and {len(rows.columns)} columns")

            if subset.enabled and len(rows) > subset.size:
                self.logger.info(f"Sampling subset: {subset.size}/{len(rows)}")
                chosen = sample_indices(len(rows), subset.size, subset.seed)
                rows = rows.iloc[chosen].reset_index(drop=True)

            if subset.drop_invalid_targets and self.target in rows.columns:
                rows = self._drop_invalid_targets(rows)

            inferencer = SchemaInferencer(
                self.logger, self.target, self.known_categorical, self.known_numeric
            )
            schema = inferencer.infer(rows)
            layout = ColumnLayout.from_schema(schema)
        except Exception as e:
            self.progress.failed("load", e)
            raise

        self._loaded = _LoadedState(rows=rows, schema=schema, layout=layout)
        self._prepared = None
        self.progress.done("load", f"data loaded: rows={len(rows)}, features={len(schema)}")
        return schema

    def load_file(self, path: str | Path, subset: Optional[SubsetOptions] = None) -> Schema:
        """Read a source file and load it."""
        self.logger.info(f"Loading data from {path}")
        return self.load_and_infer_schema(read_source_text(path), subset)

    async def load_file_async(
        self, path: str | Path, subset: Optional[SubsetOptions] = None
    ) -> Schema:
        """Read a source file off the event loop, then load it synchronously."""
        self.logger.info(f"Loading data from {path}")
        text = await read_source_text_async(path)
        return self.load_and_infer_schema(text, subset)

    def _drop_invalid_targets(self, rows: pd.DataFrame) -> pd.DataFrame:
        valid = to_finite_numbers(rows[self.target]).notna()
        dropped = int((~valid).sum())
        if dropped:
            self.logger.warning(f"Dropping {dropped} rows with an unparsable {self.target} value")
            rows = rows[valid.to_numpy()].reset_index(drop=True)
        return rows

    def prepare(
        self,
        scaler_kind: ScalerKind | str = ScalerKind.MINMAX,
        seed: int = DEFAULT_SPLIT_SEED,
        fit_scope: FitScope | str = FitScope.FULL,
    ) -> PreparedMatrices:
        """Encode, scale and split the loaded rows.

        Args:
            scaler_kind: "minmax" or "standard".
            seed: Split seed.
            fit_scope: "full" to fit the scaler on every row, "train" for the train
                partition only.

        Returns:
            Encoded feature names and the shape of the feature matrix.

        Raises:
            RuntimeError: If no data has been loaded.
            EncodingError: If rows do not match the schema or a target is unparsable.
        """
        loaded = self._require_loaded()
        self.progress.start("prepare", "encoding and scaling…")
        try:
            scaler = Scaler(scaler_kind)
            fit_scope = FitScope(fit_scope)
            encoder = FeatureEncoder(loaded.layout, self.logger)
            X = encoder.encode(loaded.rows)
            y = encoder.encode_target(loaded.rows, loaded.schema.target)

            split = split_indices(len(X), seed, self.train_fraction, self.val_fraction)
            fit_rows = split.train if fit_scope is FitScope.TRAIN else None
            scaler.fit(X, loaded.layout, fit_rows).transform(X)
        except Exception as e:
            self.progress.failed("prepare", e)
            raise

        self._prepared = _PreparedState(
            X=X, y=y, scaler=scaler, split=split, seed=seed, fit_scope=fit_scope
        )
        n_rows, n_cols = X.shape
        sizes = split.sizes()
        self.progress.done(
            "prepare",
            f"Prepared matrices: X=[{n_rows}×{n_cols}], y=[{n_rows}×1]. "
            f"Split: train={sizes['train']}, val={sizes['val']}, test={sizes['test']}",
        )
        return PreparedMatrices(feature_names=loaded.layout.feature_names, matrix_shape=X.shape)

    @property
    def is_loaded(self) -> bool:
        return self._loaded is not None

    @property
    def is_prepared(self) -> bool:
        return self._prepared is not None

    @property
    def rows(self) -> pd.DataFrame:
        return self._require_loaded().rows

    @property
    def schema(self) -> Schema:
        return self._require_loaded().schema

    @property
    def layout(self) -> ColumnLayout:
        return self._require_loaded().layout

    @property
    def feature_names(self) -> list[str]:
        return self.layout.feature_names

    @property
    def X(self) -> np.ndarray:
        return self._require_prepared().X

    @property
    def y(self) -> np.ndarray:
        return self._require_prepared().y

    @property
    def split(self) -> Split:
        return self._require_prepared().split

    @property
    def scaler(self) -> Scaler:
        return self._require_prepared().scaler

    def tensors_for(self, partition: str) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(X, y)`` rows of one partition, index-aligned."""
        prepared = self._require_prepared()
        idx = np.asarray(prepared.split.partition(partition), dtype=int)
        return prepared.X[idx], prepared.y[idx]

    def filter_indices(self, descriptor: FilterDescriptor) -> list[int]:
        """Return positions of all loaded rows matching the descriptor."""
        loaded = self._require_loaded()
        return FilterEngine(loaded.schema, self.logger).filter_indices(loaded.rows, descriptor)

    def filtered_tensors_for(self, partition: str, descriptor: FilterDescriptor) -> FilteredTensors:
        """Select the rows of a partition that match a descriptor.

        Filters are evaluated on the raw rows; the matching positions then slice
        the already encoded matrices.
        """
        loaded = self._require_loaded()
        prepared = self._require_prepared()
        candidates = prepared.split.partition(partition)
        engine = FilterEngine(loaded.schema, self.logger)
        matched = engine.filter_indices(loaded.rows, descriptor, candidates)
        idx = np.asarray(matched, dtype=int)
        self.logger.info(
            f"Filtered {partition} partition: {len(matched)}/{len(candidates)} rows match"
        )
        return FilteredTensors(
            X=prepared.X[idx],
            y=prepared.y[idx],
            match_count=len(matched),
            partition=partition,
            partition_size=len(candidates),
            indices=tuple(matched),
        )

    def filter_controls(self) -> list[FilterControl]:
        return build_filter_controls(self.schema)

    def encode_records(self, records: Sequence[Mapping[str, Any]]) -> np.ndarray:
        """Encode and scale new raw records with the prepared layout and scaler.

        Values are stringified the way parsed cells are, so records may carry
        numbers or booleans directly.
        """
        loaded = self._require_loaded()
        prepared = self._require_prepared()
        frame = pd.DataFrame(
            [{k: "" if v is None else str(v).strip() for k, v in r.items()} for r in records],
            dtype=object,
        )
        X = FeatureEncoder(loaded.layout, self.logger).encode(frame)
        return prepared.scaler.transform(X)

    def metadata(self) -> PreparationMetadata:
        """Describe the prepared state for storage next to a trained model."""
        loaded = self._require_loaded()
        prepared = self._require_prepared()
        return PreparationMetadata(
            feature_names=loaded.layout.feature_names,
            target_column=loaded.schema.target,
            scaler=prepared.scaler.kind.value,
            fit_scope=prepared.fit_scope.value,
            random_seed=prepared.seed,
            n_rows=len(loaded.rows),
            split_sizes=prepared.split.sizes(),
        )

    def _require_loaded(self) -> _LoadedState:
        if self._loaded is None:
            raise RuntimeError("Dataset not loaded. Use load_and_infer_schema() first.")
        return self._loaded

    def _require_prepared(self) -> _PreparedState:
        if self._prepared is None:
            raise RuntimeError("Dataset not prepared. Use prepare() first.")
        return self._prepared
