import io
import json
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd
from shapely.geometry import Point, mapping

from .schemas import BatchResult, ConversionRecord, UTMCoordinate, WGS84Coordinate


def generate_csv_content(rows: Iterable[Mapping[str, Any]], headers: Sequence[str]) -> str:
    """Serialise rows back to delimited text in header order; missing values are empty"""
    output_df = pd.DataFrame(list(rows)).reindex(columns=list(headers))

    output_io = io.StringIO()
    output_df.to_csv(output_io, index=False, lineterminator="\n")
    return output_io.getvalue()


def _wgs84_point(record: ConversionRecord) -> WGS84Coordinate:
    if isinstance(record.output, WGS84Coordinate):
        return record.output
    return record.input


def generate_geojson(result: BatchResult) -> Dict[str, Any]:
    """FeatureCollection of converted points with the augmented rows as properties"""
    features = []
    for record, row in zip(result.records, result.augmented_rows):
        wgs84 = _wgs84_point(record)
        point = Point(wgs84.longitude, wgs84.latitude)
        features.append({
            "type": "Feature",
            "geometry": mapping(point),
            "properties": {"title": record.title, "conversion_type": record.type.value, **row},
        })
    return {"type": "FeatureCollection", "features": features}


def _coordinate_dict(coordinate) -> Dict[str, Any]:
    if isinstance(coordinate, UTMCoordinate):
        return {
            "easting": coordinate.easting,
            "northing": coordinate.northing,
            "zone": coordinate.zone,
            "hemisphere": coordinate.hemisphere.value,
        }
    return {"latitude": coordinate.latitude, "longitude": coordinate.longitude}


def history_export_data(records: Iterable[ConversionRecord]) -> List[Dict[str, Any]]:
    return [
        {
            "timestamp": record.timestamp.isoformat(),
            "type": record.type.value,
            "input": _coordinate_dict(record.input),
            "output": _coordinate_dict(record.output),
        }
        for record in records
    ]


def export_history_json(records: Iterable[ConversionRecord]) -> str:
    return json.dumps(history_export_data(records), indent=2)
