"""Delimited text parsing and the shared numeric parse."""

import re
from typing import Any

import numpy as np
import pandas as pd

from road_risk.exceptions import FormatError

DELIMITER = ","
_LINE_BREAK = re.compile(r"\r?\n")
BYTE_ORDER_MARK = "\ufeff"


def parse_tabular_text(text: str) -> pd.DataFrame:
    """Parse comma-delimited text with a header line into string rows.

    Quoted values containing the delimiter are not supported: every comma
    separates two cells.

    Args:
        text: Source text. The first line holds the column names. A leading
            byte-order mark is ignored.

    Returns:
        DataFrame with one string-valued row per non-empty record line and the
        header names as columns, in header order. Missing trailing cells are
        empty strings and surplus cells are dropped.

    Raises:
        FormatError: If the text is empty or the header is malformed.
    """
    text = (text or "").removeprefix(BYTE_ORDER_MARK)
    if not text.strip():
        raise FormatError("Source text is empty")

    header_line, *lines = _LINE_BREAK.split(text.strip())
    headers = [h.strip() for h in header_line.split(DELIMITER)]

    if any(h == "" for h in headers):
        raise FormatError(f"Header contains an empty column name: {header_line!r}")
    duplicates = sorted({h for h in headers if headers.count(h) > 1})
    if duplicates:
        raise FormatError(f"Header contains duplicated column names: {duplicates}")

    width = len(headers)
    records = []
    for line in lines:
        if not line.strip():
            continue
        cells = [v.strip() for v in line.split(DELIMITER)][:width]
        cells.extend([""] * (width - len(cells)))
        records.append(cells)

    return pd.DataFrame(records, columns=headers, dtype=object)


def to_finite_numbers(values: pd.Series) -> pd.Series:
    """Parse a series of strings into floats, mapping anything non-finite to NaN."""
    numbers = pd.to_numeric(values.astype(object), errors="coerce").astype(float)
    return numbers.where(np.isfinite(numbers))


def parse_number(value: Any) -> float:
    """Parse a single value with exactly the semantics of ``to_finite_numbers``."""
    return float(to_finite_numbers(pd.Series([value], dtype=object)).iloc[0])
