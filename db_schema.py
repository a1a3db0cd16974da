"""
Single Source of Truth for Database Schema

All application code should import the schema from this file.

Tables:
- photos: one row per image file ever discovered, keyed by absolute path
"""

# Schema version for migrations
SCHEMA_VERSION = 1

# Photos table schema
# has_gps mirrors (latitude IS NOT NULL AND longitude IS NOT NULL)
PHOTOS_TABLE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS photos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT NOT NULL UNIQUE,
        filename TEXT NOT NULL,
        latitude REAL,
        longitude REAL,
        timestamp TEXT,
        has_gps INTEGER NOT NULL DEFAULT 0,
        thumbnail_path TEXT
    )
"""

# Indices for photos table
PHOTOS_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_photos_has_gps ON photos(has_gps)",
    "CREATE INDEX IF NOT EXISTS idx_photos_path ON photos(path)"
]


def create_database_schema(cursor):
    """
    Create all tables and indices in the database.

    Args:
        cursor: SQLite cursor object
    """
    cursor.execute(PHOTOS_TABLE_SCHEMA)

    for index_sql in PHOTOS_INDICES:
        cursor.execute(index_sql)


def get_schema_info():
    """
    Get human-readable schema information for documentation.

    Returns:
        dict: Schema information including version and table definitions
    """
    return {
        'version': SCHEMA_VERSION,
        'tables': {
            'photos': PHOTOS_TABLE_SCHEMA
        },
        'indices': {
            'photos': PHOTOS_INDICES
        }
    }
