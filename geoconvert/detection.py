import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .config import settings
from .converters import parse_float
from .schemas import (
    UTM_FIELDS,
    WGS84_FIELDS,
    ColumnMapping,
    CoordinateType,
    FieldStatus,
    ParsedTable,
)

logger = logging.getLogger(__name__)

# Substring patterns, checked against lower-cased headers
UTM_PATTERNS = {
    "easting": ["easting", "east", "x", "utm_x", "utm_easting"],
    "northing": ["northing", "north", "y", "utm_y", "utm_northing"],
    "zone": ["zone", "utm_zone", "zone_number"],
    "hemisphere": ["hemisphere", "utm_hemisphere", "ns", "north_south"],
}

WGS84_PATTERNS = {
    "latitude": ["latitude", "lat", "y", "wgs84_lat"],
    "longitude": ["longitude", "lon", "lng", "long", "x", "wgs84_lon"],
}

UTM_EASTING_RANGE = (100000, 900000)
UTM_NORTHING_RANGE = (0, 10000000)
LATITUDE_RANGE = (-90, 90)
LONGITUDE_RANGE = (-180, 180)

MIN_SCORE = 2


@dataclass(frozen=True)
class DetectionResult:
    coordinate_type: Optional[CoordinateType] = None
    column_mapping: Optional[ColumnMapping] = None
    field_status: Dict[str, FieldStatus] = field(default_factory=dict)


def match_columns(headers: Sequence[str], patterns: Mapping[str, List[str]]) -> Dict[str, str]:
    """Map each field to the first header containing one of its patterns"""
    lower_headers = [header.lower() for header in headers]
    matches = {}
    for field_name, field_patterns in patterns.items():
        for header, lower in zip(headers, lower_headers):
            if any(pattern in lower for pattern in field_patterns):
                matches[field_name] = header
                break
    return matches


def _sample_in_range(rows, column_x, range_x, column_y, range_y, sample_size) -> bool:
    for row in rows[:sample_size]:
        x = parse_float(row.get(column_x))
        y = parse_float(row.get(column_y))
        if x is None or y is None:
            return False
        if not (range_x[0] <= x <= range_x[1]) or not (range_y[0] <= y <= range_y[1]):
            return False
    return True


def is_valid_utm_data(rows: Sequence[Mapping[str, str]], columns: Mapping[str, str],
                      sample_size: Optional[int] = None) -> bool:
    """Check the leading rows hold plausible UTM easting/northing values"""
    if not columns.get("easting") or not columns.get("northing"):
        return False
    return _sample_in_range(
        rows,
        columns["easting"], UTM_EASTING_RANGE,
        columns["northing"], UTM_NORTHING_RANGE,
        sample_size or settings.detection_sample_size,
    )


def is_valid_wgs84_data(rows: Sequence[Mapping[str, str]], columns: Mapping[str, str],
                        sample_size: Optional[int] = None) -> bool:
    """Check the leading rows hold latitudes/longitudes within range"""
    if not columns.get("latitude") or not columns.get("longitude"):
        return False
    return _sample_in_range(
        rows,
        columns["latitude"], LATITUDE_RANGE,
        columns["longitude"], LONGITUDE_RANGE,
        sample_size or settings.detection_sample_size,
    )


def _field_status(columns: Mapping[str, str], detected: Optional[CoordinateType]) -> Dict[str, FieldStatus]:
    validated_fields = ()
    if detected == CoordinateType.UTM:
        validated_fields = UTM_FIELDS
    elif detected == CoordinateType.WGS84:
        validated_fields = WGS84_FIELDS

    status = {}
    for name in UTM_FIELDS + WGS84_FIELDS:
        if name not in columns:
            status[name] = FieldStatus.ABSENT
        elif name in validated_fields:
            status[name] = FieldStatus.VALIDATED
        else:
            status[name] = FieldStatus.UNVALIDATED
    return status


def detect_coordinate_type(headers: Sequence[str], rows: Sequence[Mapping[str, str]]) -> DetectionResult:
    """Guess whether a table holds UTM or WGS84 coordinates and which columns map where.

    UTM is tried first and wins whenever it scores at least two matched
    fields and its sample validates; WGS84 is only considered otherwise.
    This never raises: weak input just yields an undetected result.
    """
    rows = list(rows)
    utm_columns = match_columns(headers, UTM_PATTERNS)
    wgs84_columns = match_columns(headers, WGS84_PATTERNS)
    columns = {**utm_columns, **wgs84_columns}

    detected = None
    if len(utm_columns) >= MIN_SCORE and is_valid_utm_data(rows, columns):
        detected = CoordinateType.UTM
    elif len(wgs84_columns) >= MIN_SCORE and is_valid_wgs84_data(rows, columns):
        detected = CoordinateType.WGS84

    logger.debug(
        f"Detection scores - UTM: {len(utm_columns)}, WGS84: {len(wgs84_columns)}; "
        f"columns: {columns}; detected: {detected}"
    )

    return DetectionResult(
        coordinate_type=detected,
        column_mapping=ColumnMapping(**columns) if columns else None,
        field_status=_field_status(columns, detected),
    )


def needs_manual_mapping(table: ParsedTable, coordinate_type: CoordinateType) -> bool:
    """True when the caller should ask for an explicit column mapping"""
    return (
        coordinate_type != table.detected_coordinate_type
        or table.detected_column_mapping is None
        or not table.detected_column_mapping.is_complete(coordinate_type)
    )
