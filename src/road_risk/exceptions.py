"""Error taxonomy for the road risk data preparation pipeline."""


class RoadRiskError(ValueError):
    """Base class for all pipeline stage errors."""


class FormatError(RoadRiskError):
    """Raised when the source text is empty or its header is malformed."""


class SchemaError(RoadRiskError):
    """Raised when the target column is missing or no features can be inferred."""


class EncodingError(RoadRiskError):
    """Raised when rows no longer match the schema or targets cannot be parsed.

    Attributes:
        row_indices: Positions of the offending rows, when known.
    """

    def __init__(self, message: str, row_indices: list[int] | None = None) -> None:
        super().__init__(message)
        self.row_indices = row_indices or []


class FilterError(RoadRiskError):
    """Raised when a filter descriptor is malformed.

    Descriptors that merely reference unknown features are tolerated and never
    raise this error.
    """


class EmptySelectionError(RoadRiskError):
    """Raised when a selection of rows is empty.

    Attributes:
        partition: Name of the partition the selection was taken from.
        partition_size: Number of rows in the partition before filtering.
    """

    def __init__(self, message: str, partition: str | None = None, partition_size: int = 0) -> None:
        super().__init__(message)
        self.partition = partition
        self.partition_size = partition_size

    @property
    def partition_is_empty(self) -> bool:
        """Whether the partition itself had no rows (as opposed to no matches)."""
        return self.partition_size == 0
