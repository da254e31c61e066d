import random
import string
import time
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Hemisphere(str, Enum):
    N = "N"
    S = "S"

    def __str__(self) -> str:
        return self.value


class CoordinateType(str, Enum):
    UTM = "UTM"
    WGS84 = "WGS84"

    def __str__(self) -> str:
        return self.value


class ConversionType(str, Enum):
    UTM_TO_WGS84 = "UTM_TO_WGS84"
    WGS84_TO_UTM = "WGS84_TO_UTM"

    def __str__(self) -> str:
        return self.value


class FieldStatus(str, Enum):
    """Per-field outcome of column detection"""
    VALIDATED = "validated"
    UNVALIDATED = "unvalidated"
    ABSENT = "absent"


UTM_FIELDS = ("easting", "northing", "zone", "hemisphere")
WGS84_FIELDS = ("latitude", "longitude")

REQUIRED_FIELDS = {
    CoordinateType.UTM: UTM_FIELDS,
    CoordinateType.WGS84: WGS84_FIELDS,
}


class WGS84Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class UTMCoordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    easting: float
    northing: float
    zone: int = Field(ge=1, le=60)
    hemisphere: Hemisphere


Coordinate = Union[UTMCoordinate, WGS84Coordinate]


def generate_id() -> str:
    """Millisecond timestamp followed by 9 random base-36 characters"""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choice(alphabet) for _ in range(9))
    return f"{int(time.time() * 1000)}{suffix}"


class ConversionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    type: ConversionType
    input: Coordinate
    output: Coordinate
    title: Optional[str] = None

    @classmethod
    def create(cls, conversion_type: ConversionType, source: Coordinate, result: Coordinate,
               title: Optional[str] = None) -> "ConversionRecord":
        title = title.strip() if title else None
        return cls(
            id=generate_id(),
            timestamp=datetime.now(),
            type=conversion_type,
            input=source,
            output=result,
            title=title or None,
        )


class ColumnMapping(BaseModel):
    """Logical coordinate field -> column name in a parsed table"""
    easting: Optional[str] = None
    northing: Optional[str] = None
    zone: Optional[str] = None
    hemisphere: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None

    def missing_fields(self, coordinate_type: CoordinateType) -> List[str]:
        return [name for name in REQUIRED_FIELDS[coordinate_type] if not getattr(self, name)]

    def is_complete(self, coordinate_type: CoordinateType) -> bool:
        return not self.missing_fields(coordinate_type)

    def as_dict(self) -> Dict[str, str]:
        return self.model_dump(exclude_none=True)


class ParsedTable(BaseModel):
    headers: List[str]
    rows: List[Dict[str, str]]
    detected_coordinate_type: Optional[CoordinateType] = None
    detected_column_mapping: Optional[ColumnMapping] = None
    field_status: Dict[str, FieldStatus] = Field(default_factory=dict)
    worksheet_name: Optional[str] = None


class RowError(BaseModel):
    row_index: int
    message: str


class BatchResult(BaseModel):
    coordinate_type: CoordinateType
    converted_count: int = 0
    records: List[ConversionRecord] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)
    augmented_rows: List[Dict[str, str]] = Field(default_factory=list)
    output_headers: List[str] = Field(default_factory=list)


class BulkEntry(BaseModel):
    """One manually entered coordinate for bulk conversion"""
    title: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    easting: Optional[float] = None
    northing: Optional[float] = None
    zone: Optional[int] = None
    hemisphere: Optional[str] = None


# API payloads

class ToWGS84Request(BaseModel):
    easting: str
    northing: str
    zone: str
    hemisphere: str
    title: Optional[str] = None


class ToUTMRequest(BaseModel):
    latitude: str
    longitude: str
    target_zone: Optional[int] = Field(default=None, ge=1, le=60)
    title: Optional[str] = None


class BulkConversionRequest(BaseModel):
    coordinate_type: CoordinateType
    entries: List[BulkEntry]


class TitleUpdate(BaseModel):
    title: str


class ImportPreviewResponse(BaseModel):
    filename: str
    headers: List[str]
    row_count: int
    detected_coordinate_type: Optional[CoordinateType] = None
    detected_column_mapping: Optional[ColumnMapping] = None
    field_status: Dict[str, FieldStatus]
    worksheet_name: Optional[str] = None
    preview_rows: List[Dict[str, str]]
