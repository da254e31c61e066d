import json
import logging
import os
import sys
from datetime import datetime

from .config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger("geoconvert")


def setup_logging():
    """Setup comprehensive logging for audit purposes"""
    if logger.handlers:
        return logger

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.log_to_file:
        # Create logs directory if it doesn't exist
        os.makedirs(settings.log_dir, exist_ok=True)
        log_file = os.path.join(
            settings.log_dir, f"geoconvert_{datetime.now().strftime('%Y%m%d')}.log"
        )
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if settings.debug else settings.log_level.upper())
    return logger


def log_conversion(original_coords, converted_coords, conversion_type, user_agent="Unknown"):
    """Log conversion activities for audit trail"""
    log_entry = {
        "timestamp": datetime.now().isoformat(),
        "conversion_type": conversion_type,
        "original_coordinates": original_coords,
        "converted_coordinates": converted_coords,
        "user_agent": user_agent
    }

    logger.info(f"Conversion performed: {json.dumps(log_entry, default=str)}")
