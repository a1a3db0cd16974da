"""
File Operations - Photo metadata extraction via exiftool

Provides centralized functions for:
- GPS coordinate extraction (decimal degrees, already signed by exiftool -n)
- Capture date extraction (DateTimeOriginal, falling back to CreateDate)
- exiftool availability check

All functions handle errors gracefully: a failed or garbled exiftool call
yields empty metadata, never an exception.
"""

import json
import logging
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

error_logger = logging.getLogger('errors')

EXIFTOOL_TIMEOUT = 30

# "2024:05:01 10:00:00" -> "2024-05-01 10:00:00"
_EXIF_DATE_PREFIX = re.compile(r'^(\d{4}):(\d{2}):(\d{2})')


@dataclass
class PhotoMetadata:
    """Facts extracted from one file. Both coordinates are set or neither is."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: Optional[str] = None

    @property
    def has_gps(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def check_exiftool():
    """
    Check if the exiftool command-line utility is installed.

    Returns:
        bool: True if exiftool responded to -ver
    """
    try:
        subprocess.run(['exiftool', '-ver'], check=True, capture_output=True, timeout=EXIFTOOL_TIMEOUT)
        return True
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        error_logger.warning(
            "exiftool not found. brew install exiftool (macOS) or "
            "apt-get install libimage-exiftool-perl (Linux). "
            "Photos will be indexed without location or date."
        )
        return False


def parse_exif_datetime(value):
    """
    Normalize an exiftool date string to ISO-8601.

    Args:
        value: Date in format 'YYYY:MM:DD HH:MM:SS' (optionally with
               sub-seconds and a UTC offset)

    Returns:
        str: ISO-8601 date-time (e.g. '2024-05-01T10:00:00') or None if
             the value is not a valid calendar date/time
    """
    if not isinstance(value, str):
        return None

    normalized = _EXIF_DATE_PREFIX.sub(r'\1-\2-\3', value.strip())
    try:
        return datetime.fromisoformat(normalized).isoformat()
    except ValueError:
        return None


def _coordinate(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_exiftool_output(stdout):
    """
    Map exiftool -j -n JSON output to PhotoMetadata.

    Args:
        stdout: Raw JSON text (a one-element array)

    Returns:
        PhotoMetadata

    Raises:
        ValueError: If the output is not the expected JSON shape
    """
    data = json.loads(stdout)
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        raise ValueError("unexpected exiftool output shape")
    tags = data[0]

    metadata = PhotoMetadata()

    latitude = _coordinate(tags.get('GPSLatitude'))
    longitude = _coordinate(tags.get('GPSLongitude'))
    if latitude is not None and longitude is not None:
        metadata.latitude = latitude
        metadata.longitude = longitude

    # DateTimeOriginal first (actual capture), then CreateDate
    if tags.get('DateTimeOriginal'):
        metadata.timestamp = parse_exif_datetime(tags['DateTimeOriginal'])
    elif tags.get('CreateDate'):
        metadata.timestamp = parse_exif_datetime(tags['CreateDate'])

    return metadata


def extract_metadata(file_path):
    """
    Extract GPS and capture date from a photo using exiftool.

    Args:
        file_path: Absolute path to photo file

    Returns:
        PhotoMetadata: Empty (all None) if exiftool failed for any reason
    """
    try:
        result = subprocess.run(
            ['exiftool', '-j', '-n', file_path],
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
            timeout=EXIFTOOL_TIMEOUT
        )
    except subprocess.TimeoutExpired:
        error_logger.warning(f"exiftool timed out after {EXIFTOOL_TIMEOUT}s for {file_path}")
        return PhotoMetadata()
    except OSError as e:
        error_logger.warning(f"exiftool could not be started for {file_path}: {e}")
        return PhotoMetadata()

    if result.returncode != 0:
        stderr = (result.stderr or '').strip()
        error_logger.warning(f"exiftool failed for {file_path} (exit {result.returncode}): {stderr}")
        return PhotoMetadata()

    try:
        return parse_exiftool_output(result.stdout)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        error_logger.warning(f"Unreadable exiftool output for {file_path}: {e}")
        return PhotoMetadata()
