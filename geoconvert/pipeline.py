"""
Batch conversion of parsed tables and manual bulk entries.

Each row is extracted, validated and projected on its own; a row that
cannot be read is recorded as a :class:`~geoconvert.schemas.RowError` and
the batch carries on. The only batch-level failure is an incomplete column
mapping, which raises :class:`~geoconvert.exceptions.MappingIncompleteError`
before any row is touched.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from .converters import parse_utm_inputs, parse_wgs84_inputs, to_utm, to_wgs84
from .exceptions import MappingIncompleteError
from .schemas import (
    REQUIRED_FIELDS,
    BatchResult,
    BulkEntry,
    ColumnMapping,
    ConversionRecord,
    ConversionType,
    CoordinateType,
    ParsedTable,
    RowError,
    UTMCoordinate,
    WGS84Coordinate,
)

logger = logging.getLogger(__name__)

UTM_OUTPUT_COLUMNS = ["converted_latitude", "converted_longitude"]
WGS84_OUTPUT_COLUMNS = [
    "converted_easting",
    "converted_northing",
    "converted_zone",
    "converted_hemisphere",
]


def extract_utm_from_row(row: Mapping[str, str], mapping: ColumnMapping) -> Optional[UTMCoordinate]:
    """Read and validate a UTM coordinate from a row via the column mapping"""
    return parse_utm_inputs(
        row.get(mapping.easting or "", ""),
        row.get(mapping.northing or "", ""),
        row.get(mapping.zone or "", ""),
        row.get(mapping.hemisphere or "", ""),
    )


def extract_wgs84_from_row(row: Mapping[str, str], mapping: ColumnMapping) -> Optional[WGS84Coordinate]:
    """Read and validate a WGS84 coordinate from a row via the column mapping"""
    return parse_wgs84_inputs(
        row.get(mapping.latitude or "", ""),
        row.get(mapping.longitude or "", ""),
    )


def _wgs84_columns(wgs84: WGS84Coordinate) -> Dict[str, str]:
    return {
        "converted_latitude": f"{wgs84.latitude:.8f}",
        "converted_longitude": f"{wgs84.longitude:.8f}",
    }


def _utm_columns(utm: UTMCoordinate) -> Dict[str, str]:
    return {
        "converted_easting": f"{utm.easting:.2f}",
        "converted_northing": f"{utm.northing:.2f}",
        "converted_zone": str(utm.zone),
        "converted_hemisphere": utm.hemisphere.value,
    }


@dataclass(frozen=True)
class Direction:
    """Everything that differs between converting from UTM and from WGS84"""
    conversion_type: ConversionType
    extract: Callable[[Mapping[str, str], ColumnMapping], Optional[Union[UTMCoordinate, WGS84Coordinate]]]
    transform: Callable
    derived_columns: Callable[..., Dict[str, str]]
    output_columns: List[str]


DIRECTIONS = {
    CoordinateType.UTM: Direction(
        conversion_type=ConversionType.UTM_TO_WGS84,
        extract=extract_utm_from_row,
        transform=to_wgs84,
        derived_columns=_wgs84_columns,
        output_columns=UTM_OUTPUT_COLUMNS,
    ),
    CoordinateType.WGS84: Direction(
        conversion_type=ConversionType.WGS84_TO_UTM,
        extract=extract_wgs84_from_row,
        transform=to_utm,
        derived_columns=_utm_columns,
        output_columns=WGS84_OUTPUT_COLUMNS,
    ),
}


def _is_finite(coordinate) -> bool:
    return all(
        math.isfinite(value)
        for value in coordinate.model_dump().values()
        if isinstance(value, float)
    )


def resolve_mapping(table: ParsedTable, coordinate_type: CoordinateType,
                    column_mapping: Union[ColumnMapping, Mapping[str, str], None] = None) -> ColumnMapping:
    """Pick the explicit mapping (or the detected one) and check it is usable.

    A field whose column is not among the table headers counts as missing.

    Raises:
        MappingIncompleteError: If any required field has no usable column.
    """
    if column_mapping is None:
        mapping = table.detected_column_mapping or ColumnMapping()
    elif isinstance(column_mapping, ColumnMapping):
        mapping = column_mapping
    else:
        mapping = ColumnMapping(**column_mapping)

    headers = set(table.headers)
    missing = [
        name for name in REQUIRED_FIELDS[coordinate_type]
        if getattr(mapping, name) not in headers
    ]
    if missing:
        raise MappingIncompleteError(coordinate_type.value, missing)
    return mapping


def _convert_row(direction: Direction, source, title: str,
                 result: BatchResult, row: Dict[str, str]) -> Optional[str]:
    """Project one extracted coordinate and append its outputs; returns an error reason"""
    converted = direction.transform(source)
    if not _is_finite(converted):
        return "projection produced a non-finite result"

    result.records.append(
        ConversionRecord.create(direction.conversion_type, source, converted, title)
    )
    result.augmented_rows.append({**row, **direction.derived_columns(converted)})
    result.converted_count += 1
    return None


def run_batch_conversion(table: ParsedTable, coordinate_type: Union[CoordinateType, str],
                         column_mapping: Union[ColumnMapping, Mapping[str, str], None] = None,
                         title: Optional[str] = None) -> BatchResult:
    """Convert every row of a parsed table, collecting per-row failures.

    Args:
        table: Output of :func:`geoconvert.tabular.parse_tabular`.
        coordinate_type: Type of the coordinates held in the table.
        column_mapping: Explicit mapping; defaults to the detected one.
        title: Optional prefix for the per-row record titles.

    Returns:
        A :class:`BatchResult`; zero converted rows is not an error here.

    Raises:
        MappingIncompleteError: If the mapping lacks required fields.
    """
    coordinate_type = CoordinateType(coordinate_type)
    mapping = resolve_mapping(table, coordinate_type, column_mapping)
    direction = DIRECTIONS[coordinate_type]
    title = title.strip() if title else ""

    result = BatchResult(
        coordinate_type=coordinate_type,
        output_headers=list(table.headers) + direction.output_columns,
    )

    for index, row in enumerate(table.rows):
        row_number = index + 1
        row_title = f"{title} Row {row_number}" if title else f"CSV Row {row_number}"
        try:
            source = direction.extract(row, mapping)
            if source is None:
                reason = f"invalid or incomplete {coordinate_type.value} coordinate"
            else:
                reason = _convert_row(direction, source, row_title, result, dict(row))
        except Exception as e:
            reason = str(e) or e.__class__.__name__

        if reason:
            result.errors.append(RowError(row_index=index, message=f"Row {row_number}: {reason}"))
            logger.warning(f"Row {row_number} skipped: {reason}")

    logger.info(
        f"Batch conversion completed ({direction.conversion_type.value}). "
        f"Successful: {result.converted_count}/{len(table.rows)}"
    )
    return result


def _entry_row(entry: BulkEntry, fields: Sequence[str]) -> Dict[str, str]:
    row = {"title": entry.title}
    for name in fields:
        value = getattr(entry, name)
        row[name] = "" if value is None else str(value)
    return row


def run_bulk_entries(entries: Sequence[BulkEntry], coordinate_type: Union[CoordinateType, str]) -> BatchResult:
    """Convert manually entered coordinates; untitled entries become 'Entry N'"""
    coordinate_type = CoordinateType(coordinate_type)
    direction = DIRECTIONS[coordinate_type]
    fields = REQUIRED_FIELDS[coordinate_type]
    identity = ColumnMapping(**{name: name for name in fields})

    result = BatchResult(
        coordinate_type=coordinate_type,
        output_headers=["title"] + list(fields) + direction.output_columns,
    )

    for index, entry in enumerate(entries):
        entry_title = entry.title.strip() or f"Entry {index + 1}"
        row = _entry_row(entry, fields)
        try:
            source = direction.extract(row, identity)
            if source is None:
                reason = f"invalid or incomplete {coordinate_type.value} coordinate"
            else:
                reason = _convert_row(direction, source, entry_title, result, row)
        except Exception as e:
            reason = str(e) or e.__class__.__name__

        if reason:
            result.errors.append(RowError(row_index=index, message=f"{entry_title}: {reason}"))
            logger.warning(f"Bulk entry {index + 1} skipped: {reason}")

    logger.info(f"Bulk conversion completed. Successful: {result.converted_count}/{len(entries)}")
    return result
