"""
Shared pytest fixtures: throwaway libraries, generated images, fake exiftool
"""

import os
import threading

import pytest
from PIL import Image
from pillow_heif import register_heif_opener

from file_operations import PhotoMetadata
from photo_index import PhotoIndex, get_db_connection

register_heif_opener()


def make_image(path, size=(640, 480), color=(200, 60, 30), fmt=None):
    """Write a solid-color test image and return its path."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    img = Image.new('RGB', size, color)
    img.save(path, format=fmt)
    return path


def make_heic(path, size=(640, 480), color=(30, 90, 200)):
    return make_image(path, size=size, color=color, fmt='HEIF')


class FakeExtractor:
    """
    Stand-in for extract_metadata: answers by file basename.

    Set `gate` to a threading.Event to hold every call until it is set.
    """

    def __init__(self, by_name=None):
        self.by_name = dict(by_name or {})
        self.calls = []
        self.gate = None
        self.entered = threading.Event()

    def __call__(self, file_path):
        self.calls.append(file_path)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=10)
        meta = self.by_name.get(os.path.basename(file_path))
        return PhotoMetadata(meta.latitude, meta.longitude, meta.timestamp) if meta else PhotoMetadata()


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def workspace(tmp_path):
    """Paths for one isolated library: photos root, db, thumbnails, config."""
    paths = {
        'root': tmp_path / 'photos',
        'db': tmp_path / 'photos.db',
        'thumbnails': tmp_path / 'thumbnails',
        'config': tmp_path / 'config.json',
    }
    paths['root'].mkdir()
    paths['thumbnails'].mkdir()
    return paths


@pytest.fixture
def photo_index(tmp_path):
    conn = get_db_connection(str(tmp_path / 'index.db'))
    index = PhotoIndex(conn)
    index.ensure_schema()
    yield index
    conn.close()


def read_rows(db_path):
    conn = get_db_connection(str(db_path))
    try:
        return {row['filename']: row for row in PhotoIndex(conn).list_photos()}
    finally:
        conn.close()
