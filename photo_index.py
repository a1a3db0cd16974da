"""
Photo Index - Storage access for the photos table

Provides:
- Existence checks by absolute path (the skip-check used by every scan)
- Idempotent inserts (an existing path is a silent no-op)
- Point reads and listing for the API
- Manual location correction

Usage:
    conn = get_db_connection(db_path)
    index = PhotoIndex(conn)
    index.ensure_schema()
    if not index.has_path(path):
        index.insert_photo(path, latitude=48.85, longitude=2.35)
"""

import os
import sqlite3

from db_schema import create_database_schema


def get_db_connection(db_path):
    """Create database connection"""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row  # Return rows as dictionaries
    return conn


def validate_coordinates(latitude, longitude):
    """
    Validate a latitude/longitude pair in decimal degrees.

    Args:
        latitude: Value convertible to float, within [-90, 90]
        longitude: Value convertible to float, within [-180, 180]

    Returns:
        tuple: (latitude, longitude) as floats

    Raises:
        ValueError: If either value is missing, non-numeric or out of range
    """
    if latitude is None or longitude is None or isinstance(latitude, bool) or isinstance(longitude, bool):
        raise ValueError("latitude and longitude are both required")

    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        raise ValueError(f"invalid coordinates: {latitude!r}, {longitude!r}")

    if lat != lat or lng != lng:  # NaN
        raise ValueError("coordinates must be real numbers")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise ValueError(f"longitude out of range: {lng}")

    return lat, lng


class PhotoIndex:
    """
    Thin data-access layer over the photos table.

    Each insert/update commits on its own: there is no transaction spanning
    several files, so an interrupted scan leaves a consistent index.
    """

    def __init__(self, db_connection):
        """
        Initialize photo index.

        Args:
            db_connection: Active SQLite database connection
        """
        self.db_conn = db_connection

    def ensure_schema(self):
        """Create the photos table and indices if missing."""
        cursor = self.db_conn.cursor()
        create_database_schema(cursor)
        self.db_conn.commit()

    def has_path(self, path):
        """
        Check whether a file is already indexed.

        Args:
            path: Absolute file path

        Returns:
            bool: True if a row exists for this path
        """
        cursor = self.db_conn.cursor()
        cursor.execute("SELECT 1 FROM photos WHERE path = ? LIMIT 1", (path,))
        return cursor.fetchone() is not None

    def insert_photo(self, path, latitude=None, longitude=None, timestamp=None, thumbnail_path=None):
        """
        Insert one photo row; a duplicate path is ignored.

        has_gps is derived here so it can never disagree with the coordinates.

        Args:
            path: Absolute file path (unique key)
            latitude: Decimal degrees or None
            longitude: Decimal degrees or None
            timestamp: ISO-8601 capture time or None
            thumbnail_path: Thumbnail filename or None

        Returns:
            bool: True if a new row was created, False if the path already existed
        """
        if latitude is None or longitude is None:
            latitude = longitude = None
            has_gps = 0
        else:
            has_gps = 1

        cursor = self.db_conn.cursor()
        cursor.execute("""
            INSERT OR IGNORE INTO photos
            (path, filename, latitude, longitude, timestamp, has_gps, thumbnail_path)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (path, os.path.basename(path), latitude, longitude, timestamp, has_gps, thumbnail_path))

        self.db_conn.commit()
        return cursor.rowcount > 0

    def get_photo(self, photo_id):
        """
        Get a single photo row.

        Returns:
            dict: Photo row, or None if not found
        """
        cursor = self.db_conn.cursor()
        cursor.execute("SELECT * FROM photos WHERE id = ?", (photo_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def list_photos(self, has_gps=None):
        """
        List photo rows in insertion order.

        Args:
            has_gps: Optional bool filter (uses idx_photos_has_gps)

        Returns:
            list: List of row dicts
        """
        cursor = self.db_conn.cursor()
        if has_gps is None:
            cursor.execute("SELECT * FROM photos ORDER BY id")
        else:
            cursor.execute("SELECT * FROM photos WHERE has_gps = ? ORDER BY id", (1 if has_gps else 0,))
        return [dict(row) for row in cursor.fetchall()]

    def count_photos(self):
        """Return total number of indexed photos."""
        cursor = self.db_conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM photos")
        return cursor.fetchone()[0]

    def update_location(self, photo_id, latitude, longitude):
        """
        Manually set a photo's location and mark it geolocated.

        Args:
            photo_id: Photo ID
            latitude: Decimal degrees
            longitude: Decimal degrees

        Returns:
            bool: True if the photo exists and was updated

        Raises:
            ValueError: If the coordinates are invalid
        """
        lat, lng = validate_coordinates(latitude, longitude)

        cursor = self.db_conn.cursor()
        cursor.execute("""
            UPDATE photos
            SET latitude = ?, longitude = ?, has_gps = 1
            WHERE id = ?
        """, (lat, lng, photo_id))

        self.db_conn.commit()
        return cursor.rowcount > 0
