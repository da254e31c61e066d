"""
Exception hierarchy for the conversion core.

Coordinate validation never raises (invalid input comes back as ``None``)
and per-row batch failures are collected as values, so only structural
problems are exceptions::

    GeoConvertError
    ├── FormatError              tabular input has no data rows, bad sheet
    └── MappingIncompleteError   column mapping lacks required fields
"""

from typing import Sequence


class GeoConvertError(Exception):
    """Base exception for the conversion core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class FormatError(GeoConvertError):
    """Raised when tabular input is structurally unusable."""


class MappingIncompleteError(GeoConvertError):
    """Raised before a batch starts when the column mapping is incomplete.

    Args:
        coordinate_type: The coordinate type chosen for the batch.
        missing: Logical field names with no mapped column.
    """

    def __init__(self, coordinate_type: str, missing: Sequence[str]):
        missing_str = ", ".join(missing)
        super().__init__(
            f"Column mapping for {coordinate_type} is missing required fields: {missing_str}"
        )
        self.coordinate_type = coordinate_type
        self.missing = list(missing)
