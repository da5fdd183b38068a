"""Declarative row filters shared by filter controls and filtered evaluation."""

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from road_risk.exceptions import FilterError
from road_risk.preprocessing.parsing import parse_number, to_finite_numbers
from road_risk.preprocessing.schema import FeatureDescriptor, FeatureKind, Schema

BOOLEAN_MODES = ("any", "True", "False")


@dataclass(frozen=True)
class NumericRange:
    """Inclusive bounds for a numeric feature; ``None`` leaves a side open."""

    min: Optional[float] = None
    max: Optional[float] = None

    def accepts(self, value: float) -> bool:
        if not math.isfinite(value):
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass(frozen=True)
class BooleanFilter:
    """Accepts rows whose value equals ``mode``, or every row for ``"any"``."""

    mode: str = "any"

    def accepts(self, value: str) -> bool:
        return self.mode == "any" or value == self.mode


@dataclass(frozen=True)
class CategoricalFilter:
    """Accepts rows whose value is in ``accepted``; an empty set accepts all."""

    accepted: frozenset[str] = field(default_factory=frozenset)

    def accepts(self, value: str) -> bool:
        return not self.accepted or value in self.accepted


FeatureFilter = Union[NumericRange, BooleanFilter, CategoricalFilter]
FilterDescriptor = Mapping[str, FeatureFilter]

_FILTER_KIND = {
    NumericRange: FeatureKind.NUMERIC,
    BooleanFilter: FeatureKind.BOOLEAN,
    CategoricalFilter: FeatureKind.CATEGORICAL,
}


@dataclass(frozen=True)
class FilterControl:
    """Abstract description of the UI control for one feature.

    Attributes:
        feature: Feature name.
        kind: Feature kind the control edits.
        default_min: Initial lower bound of a numeric range control.
        default_max: Initial upper bound of a numeric range control.
        options: Selectable values for boolean and categorical controls.
        multiple: Whether several options may be selected at once.
    """

    feature: str
    kind: FeatureKind
    default_min: Optional[float] = None
    default_max: Optional[float] = None
    options: tuple[str, ...] = ()
    multiple: bool = False


def build_filter_controls(schema: Schema) -> list[FilterControl]:
    """Describe one filter control per feature, in schema order."""
    controls = []
    for feature in schema:
        if feature.kind is FeatureKind.NUMERIC:
            stats = feature.stats
            lo = stats.min if stats is not None and math.isfinite(stats.min) else 0.0
            hi = stats.max if stats is not None and math.isfinite(stats.max) else 1.0
            controls.append(
                FilterControl(feature.name, feature.kind, default_min=lo, default_max=hi)
            )
        elif feature.kind is FeatureKind.BOOLEAN:
            controls.append(FilterControl(feature.name, feature.kind, options=BOOLEAN_MODES))
        else:
            controls.append(
                FilterControl(
                    feature.name, feature.kind, options=tuple(feature.values or ()), multiple=True
                )
            )
    return controls


def default_descriptor(schema: Schema) -> dict[str, FeatureFilter]:
    """Return the descriptor produced by untouched filter controls."""
    descriptor: dict[str, FeatureFilter] = {}
    for control in build_filter_controls(schema):
        if control.kind is FeatureKind.NUMERIC:
            descriptor[control.feature] = NumericRange(control.default_min, control.default_max)
        elif control.kind is FeatureKind.BOOLEAN:
            descriptor[control.feature] = BooleanFilter("any")
        else:
            descriptor[control.feature] = CategoricalFilter()
    return descriptor


def _parse_bound(feature: str, raw: Mapping[str, Any], key: str) -> Optional[float]:
    value = raw.get(key)
    if value is None:
        return None
    try:
        bound = float(value)
    except (TypeError, ValueError):
        raise FilterError(f"Filter for '{feature}' has a non-numeric {key}: {value!r}")
    if math.isnan(bound):
        raise FilterError(f"Filter for '{feature}' has a NaN {key}")
    # Infinite bounds are the same as open ones
    return bound if math.isfinite(bound) else None


def parse_filter_descriptor(
    raw: Mapping[str, Mapping[str, Any]], schema: Schema, logger: logging.Logger | None = None
) -> dict[str, FeatureFilter]:
    """Build a typed descriptor from a plain mapping (JSON or YAML).

    Entries are shaped ``{"min": .., "max": ..}`` for numeric features,
    ``{"mode": "any"|"True"|"False"}`` for boolean features and
    ``{"set": [..]}`` for categorical features. Entries for unknown features
    are skipped.

    Raises:
        FilterError: If an entry is malformed.
    """
    logger = logger or logging.getLogger(__name__)
    descriptor: dict[str, FeatureFilter] = {}
    for name, spec in raw.items():
        if name not in schema:
            logger.warning(f"Ignoring filter for unknown feature '{name}'")
            continue
        if not isinstance(spec, Mapping):
            raise FilterError(f"Filter for '{name}' must be a mapping, got {type(spec).__name__}")

        kind = schema[name].kind
        if kind is FeatureKind.NUMERIC:
            lo = _parse_bound(name, spec, "min")
            hi = _parse_bound(name, spec, "max")
            if lo is not None and hi is not None and lo > hi:
                raise FilterError(f"Filter for '{name}' has min {lo} greater than max {hi}")
            descriptor[name] = NumericRange(lo, hi)
        elif kind is FeatureKind.BOOLEAN:
            mode = str(spec.get("mode", "any"))
            if mode not in BOOLEAN_MODES:
                raise FilterError(f"Filter for '{name}' has invalid mode {mode!r}")
            descriptor[name] = BooleanFilter(mode)
        else:
            accepted = spec.get("set") or ()
            if isinstance(accepted, str) or not isinstance(accepted, Iterable):
                raise FilterError(f"Filter for '{name}' must list accepted values under 'set'")
            descriptor[name] = CategoricalFilter(frozenset(str(v) for v in accepted))
    return descriptor


class FilterEngine:
    """Evaluates filter descriptors against raw rows.

    Results depend only on the schema, the rows and the descriptor, so the same
    descriptor selects consistently from the full dataset and from any
    pre-selected subset such as a split partition.
    """

    def __init__(self, schema: Schema, logger: logging.Logger) -> None:
        """Initialize FilterEngine.

        Args:
            schema: Schema the descriptors refer to.
            logger: Logger instance for tracking operations.
        """
        self.schema = schema
        self.logger = logger

    def active_filters(self, descriptor: FilterDescriptor) -> list[tuple[FeatureDescriptor, FeatureFilter]]:
        """Pair each applicable descriptor entry with its feature, in schema order.

        Entries for unknown features, or whose filter type does not match the
        feature kind, are logged and ignored.
        """
        for name in descriptor:
            if name not in self.schema:
                self.logger.warning(f"Ignoring filter for unknown feature '{name}'")

        active = []
        for feature in self.schema:
            flt = descriptor.get(feature.name)
            if flt is None:
                continue
            if _FILTER_KIND.get(type(flt)) is not feature.kind:
                self.logger.warning(
                    f"Ignoring {type(flt).__name__} for {feature.kind.value} feature '{feature.name}'"
                )
                continue
            active.append((feature, flt))
        return active

    def match_row(self, row: Mapping[str, Any], descriptor: FilterDescriptor) -> bool:
        """Return whether a single row satisfies every applicable filter."""
        for feature, flt in self.active_filters(descriptor):
            value = row.get(feature.name, "")
            if isinstance(flt, NumericRange):
                ok = flt.accepts(parse_number(value))
            else:
                ok = flt.accepts(str(value))
            if not ok:
                return False
        return True

    def mask(self, rows: pd.DataFrame, descriptor: FilterDescriptor) -> np.ndarray:
        """Vectorised ``match_row`` over every row; returns a boolean array."""
        keep = np.ones(len(rows), dtype=bool)
        for feature, flt in self.active_filters(descriptor):
            column = rows[feature.name]
            if isinstance(flt, NumericRange):
                numbers = to_finite_numbers(column).to_numpy()
                ok = np.isfinite(numbers)
                if flt.min is not None:
                    ok &= numbers >= flt.min
                if flt.max is not None:
                    ok &= numbers <= flt.max
            elif isinstance(flt, BooleanFilter):
                if flt.mode == "any":
                    continue
                ok = (column.astype(str) == flt.mode).to_numpy()
            else:
                if not flt.accepted:
                    continue
                ok = column.astype(str).isin(flt.accepted).to_numpy()
            keep &= ok
        return keep

    def filter_indices(
        self,
        rows: pd.DataFrame,
        descriptor: FilterDescriptor,
        indices: Optional[Sequence[int]] = None,
    ) -> list[int]:
        """Return the positions of rows satisfying the descriptor.

        Args:
            rows: String-valued rows.
            descriptor: Filters keyed by feature name.
            indices: Optional candidate positions; order is preserved. Defaults to
                every row in order.

        Returns:
            Matching positions, in candidate order.
        """
        if indices is None:
            return np.flatnonzero(self.mask(rows, descriptor)).tolist()
        candidates = np.asarray(indices, dtype=int)
        subset = rows.iloc[candidates]
        return candidates[self.mask(subset, descriptor)].tolist()
