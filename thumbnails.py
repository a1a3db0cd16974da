"""
Thumbnails - HEIC normalization and square thumbnail generation

- HEIC/HEIF is decoded with pillow-heif and re-encoded as JPEG in memory
- Thumbnails are a fixed 300x300 center crop ("cover" fit), saved as JPEG
- Thumbnail filenames are unique per generation event and never renamed
"""

import logging
import os
import time
from io import BytesIO

from PIL import Image, ImageOps, ImageFile
from pillow_heif import register_heif_opener

# Register HEIF/HEIC support for PIL
register_heif_opener()

# Allow loading truncated images (suppress warnings)
ImageFile.LOAD_TRUNCATED_IMAGES = True

error_logger = logging.getLogger('errors')

THUMBNAIL_SIZE = (300, 300)
THUMBNAIL_QUALITY = 85

# Formats that need converting before Pillow-based resizing downstream
HEIF_EXTENSIONS = {'.heic', '.heif'}


def normalize_image(data, extension):
    """
    Convert a raw image buffer to a standard raster format when needed.

    Args:
        data: Raw file bytes
        extension: Lower- or upper-case file extension including the dot

    Returns:
        bytes: JPEG bytes for HEIC/HEIF input, the original bytes for any
               other format, or None if the input is empty or conversion failed
    """
    if not data:
        error_logger.error("Refusing to normalize an empty image buffer")
        return None

    if extension.lower() not in HEIF_EXTENSIONS:
        return data

    try:
        with Image.open(BytesIO(data)) as img:
            if img.mode != 'RGB':
                img = img.convert('RGB')
            buffer = BytesIO()
            img.save(buffer, format='JPEG', quality=100)
            return buffer.getvalue()
    except Exception as e:
        error_logger.error(f"Error converting HEIC/HEIF image: {e}")
        return None


def make_thumbnail_filename(source_path, thumbnails_dir):
    """
    Build a unique thumbnail filename for a source file.

    Format: thumb_<time_ns>_<original stem>.jpg, with a counter suffix if
    that name is already taken in thumbnails_dir.
    """
    stem = os.path.splitext(os.path.basename(source_path))[0]
    base_name = f"thumb_{time.time_ns()}_{stem}"
    filename = f"{base_name}.jpg"

    # Handle naming collisions
    counter = 1
    while os.path.exists(os.path.join(thumbnails_dir, filename)):
        filename = f"{base_name}_{counter}.jpg"
        counter += 1

    return filename


def generate_thumbnail(data, source_path, thumbnails_dir):
    """
    Generate a 300x300 cover-cropped JPEG thumbnail.

    Args:
        data: Normalized image bytes (any Pillow-readable format)
        source_path: Original file path (used for the thumbnail name)
        thumbnails_dir: Thumbnail store directory

    Returns:
        str: Thumbnail filename (relative to thumbnails_dir), or None on error
    """
    thumbnail_path = None
    try:
        os.makedirs(thumbnails_dir, exist_ok=True)
        filename = make_thumbnail_filename(source_path, thumbnails_dir)
        thumbnail_path = os.path.join(thumbnails_dir, filename)

        with Image.open(BytesIO(data)) as img:
            # Apply EXIF orientation
            img = ImageOps.exif_transpose(img)

            # Convert to RGB if needed
            if img.mode != 'RGB':
                img = img.convert('RGB')

            img = ImageOps.fit(img, THUMBNAIL_SIZE, method=Image.Resampling.LANCZOS)
            img.save(thumbnail_path, format='JPEG', quality=THUMBNAIL_QUALITY, optimize=True)

        return filename
    except Exception as e:
        error_logger.error(f"Error generating thumbnail for {source_path}: {e}")
        if thumbnail_path and os.path.exists(thumbnail_path):
            try:
                os.remove(thumbnail_path)
            except OSError as cleanup_error:
                error_logger.warning(f"Could not remove partial thumbnail {thumbnail_path}: {cleanup_error}")
        return None
