"""Shared fixtures for the geoconvert test suite."""

import os

# Keep test runs from writing dated log files
os.environ.setdefault("GEOCONVERT_LOG_TO_FILE", "false")

import pytest

from geoconvert.history import ConversionHistory
from geoconvert.tabular import parse_tabular

UTM_CSV = """easting,northing,zone,hemisphere
500000,4649776,33,N
501000,4650000,33,N
431255,4582677,31,N
334777,6251341,56,S
600000,5000000,33,N"""

WGS84_CSV = """lat,lon,place
41.392689,2.177699,Barcelona
40.416775,-3.703790,Madrid
-33.8688,151.2093,Sydney"""


@pytest.fixture()
def utm_table():
    return parse_tabular(UTM_CSV)


@pytest.fixture()
def wgs84_table():
    return parse_tabular(WGS84_CSV)


@pytest.fixture()
def wgs84_csv_15_rows() -> str:
    """15 points spread over both hemispheres and several zones."""
    lines = ["site,lat,lon"]
    for i in range(15):
        lat = -60 + i * 8.5
        lon = -170 + i * 23.1
        lines.append(f"P{i + 1},{lat:.4f},{lon:.4f}")
    return "\n".join(lines)


@pytest.fixture()
def history() -> ConversionHistory:
    return ConversionHistory(limit=50)


@pytest.fixture()
def utm_csv_text() -> str:
    return UTM_CSV


@pytest.fixture()
def wgs84_csv_text() -> str:
    return WGS84_CSV
