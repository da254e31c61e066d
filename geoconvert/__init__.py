"""
GeoConvert Package
WGS84 / UTM coordinate conversion with CSV and Excel batch import
"""

__version__ = "1.0.0"
__author__ = "GeoConvert Team"

from .logger import setup_logging

# Initialize logging when package is imported
setup_logging()

# Import key components to make them easily accessible
from .converters import parse_utm_inputs, parse_wgs84_inputs, to_utm, to_wgs84
from .exceptions import FormatError, GeoConvertError, MappingIncompleteError
from .pipeline import run_batch_conversion, run_bulk_entries
from .tabular import parse_tabular
from .main import app, create_app
