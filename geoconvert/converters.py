import logging
import math
from functools import lru_cache
from typing import Optional

from pyproj import Transformer

from .schemas import Hemisphere, UTMCoordinate, WGS84Coordinate

logger = logging.getLogger(__name__)

WGS84_PROJ = "+proj=longlat +ellps=WGS84 +datum=WGS84 +no_defs"

MIN_ZONE = 1
MAX_ZONE = 60


def utm_proj_string(zone: int, hemisphere: Hemisphere) -> str:
    """PROJ definition of a WGS84 UTM zone; +south applies the 10,000,000 m false northing"""
    south = " +south" if hemisphere == Hemisphere.S else ""
    return f"+proj=utm +zone={zone}{south} +ellps=WGS84 +datum=WGS84 +units=m +no_defs"


def central_meridian(zone: int) -> float:
    return -180.0 + 6 * (zone - 1) + 3


def zone_for_longitude(longitude: float) -> int:
    """Standard 6 degree zone numbering; longitude 180 folds into zone 60"""
    zone = math.floor((longitude + 180) / 6) + 1
    return max(MIN_ZONE, min(MAX_ZONE, zone))


@lru_cache(maxsize=256)
def _forward_transformer(zone: int, hemisphere: Hemisphere) -> Transformer:
    return Transformer.from_crs(WGS84_PROJ, utm_proj_string(zone, hemisphere), always_xy=True)


@lru_cache(maxsize=256)
def _reverse_transformer(zone: int, hemisphere: Hemisphere) -> Transformer:
    return Transformer.from_crs(utm_proj_string(zone, hemisphere), WGS84_PROJ, always_xy=True)


def to_wgs84(utm: UTMCoordinate) -> WGS84Coordinate:
    """Inverse Transverse Mercator: UTM easting/northing to WGS84 latitude/longitude.

    No range checks happen here; unrealistic input still yields a value.
    """
    transformer = _reverse_transformer(utm.zone, Hemisphere(utm.hemisphere))
    lon, lat = transformer.transform(utm.easting, utm.northing)
    logger.debug(
        f"Transformed UTM {utm.zone}{utm.hemisphere} ({utm.easting}, {utm.northing}) -> ({lat:.8f}, {lon:.8f})"
    )
    return WGS84Coordinate(latitude=lat, longitude=lon)


def to_utm(wgs84: WGS84Coordinate, target_zone: Optional[int] = None) -> UTMCoordinate:
    """Forward Transverse Mercator projection of a WGS84 coordinate.

    The zone is derived from the longitude unless ``target_zone`` is given, in
    which case that zone's meridian is used even when the point lies far
    outside it. A falsy ``target_zone`` (None or 0) counts as omitted; any
    other value outside 1-60 raises ValueError. Hemisphere is N for
    latitude >= 0.
    """
    zone = target_zone if target_zone else zone_for_longitude(wgs84.longitude)
    if not MIN_ZONE <= zone <= MAX_ZONE:
        raise ValueError(f"UTM zone must be between {MIN_ZONE} and {MAX_ZONE}, got {zone}")
    hemisphere = Hemisphere.N if wgs84.latitude >= 0 else Hemisphere.S

    transformer = _forward_transformer(zone, hemisphere)
    easting, northing = transformer.transform(wgs84.longitude, wgs84.latitude)
    logger.debug(
        f"Transformed WGS84 ({wgs84.latitude}, {wgs84.longitude}) -> {zone}{hemisphere} ({easting:.3f}, {northing:.3f})"
    )
    return UTMCoordinate(easting=easting, northing=northing, zone=zone, hemisphere=hemisphere)


def parse_float(value) -> Optional[float]:
    """Parse a trimmed finite float; blank or malformed input gives None"""
    if value is None:
        return None
    text = str(value).strip()
    # float() and int() accept digit separators such as "4_649_776"
    if not text or "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_zone(value) -> Optional[int]:
    """Parse a zone number; integral decimals such as '33.0' are accepted"""
    if value is None:
        return None
    text = str(value).strip()
    if not text or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        number = parse_float(text)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_utm_inputs(easting: str, northing: str, zone: str, hemisphere: str) -> Optional[UTMCoordinate]:
    """Validate raw UTM input strings; returns None when anything is invalid"""
    easting_num = parse_float(easting)
    northing_num = parse_float(northing)
    zone_num = parse_zone(zone)
    hemisphere_str = (hemisphere or "").strip().upper()

    if (
        easting_num is None
        or northing_num is None
        or zone_num is None
        or hemisphere_str not in (Hemisphere.N.value, Hemisphere.S.value)
        or zone_num < MIN_ZONE
        or zone_num > MAX_ZONE
    ):
        logger.debug(f"Rejected UTM input: ({easting!r}, {northing!r}, {zone!r}, {hemisphere!r})")
        return None

    return UTMCoordinate(
        easting=easting_num,
        northing=northing_num,
        zone=zone_num,
        hemisphere=Hemisphere(hemisphere_str),
    )


def parse_wgs84_inputs(latitude: str, longitude: str) -> Optional[WGS84Coordinate]:
    """Validate raw latitude/longitude strings; returns None when anything is invalid"""
    lat = parse_float(latitude)
    lon = parse_float(longitude)

    if lat is None or lon is None or not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        logger.debug(f"Rejected WGS84 input: ({latitude!r}, {longitude!r})")
        return None

    return WGS84Coordinate(latitude=lat, longitude=lon)
