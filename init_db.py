#!/usr/bin/env python3
"""
Initialize the photo index database with the required schema
"""

import os
import sys

from db_schema import get_schema_info
from photo_index import PhotoIndex, get_db_connection

# Paths (relative to PHOTO_MAP_HOME, else the working directory)
BASE_DIR = os.path.abspath(os.environ.get('PHOTO_MAP_HOME', os.getcwd()))
DB_PATH = os.environ.get('PHOTO_MAP_DB_PATH', os.path.join(BASE_DIR, 'photos.db'))


def init_database(db_path=DB_PATH):
    """Create the database schema (safe to run on an existing database)"""
    print("🔧 Initializing database schema...")
    print(f"   Database: {db_path}")

    db_dir = os.path.dirname(os.path.abspath(db_path))
    os.makedirs(db_dir, exist_ok=True)

    conn = get_db_connection(db_path)
    try:
        index = PhotoIndex(conn)
        index.ensure_schema()
        existing = index.count_photos()
    finally:
        conn.close()

    info = get_schema_info()
    print(f"   ✅ Schema v{info['version']} ready")
    print(f"\n📊 Tables: {', '.join(info['tables'])}")
    print(f"   photos: {existing:,} rows")
    return existing


def main(argv=None):
    """Command-line entry point: optional database path as the only argument"""
    argv = sys.argv[1:] if argv is None else argv
    init_database(argv[0] if argv else DB_PATH)
    return 0


if __name__ == '__main__':
    sys.exit(main())
