"""
Library Synchronization - Core Operations

Incremental ingestion of every configured root into the photo index:
- Phase 1: discover image files under all roots (count first)
- Phase 2: for each file not yet indexed, extract metadata, thumbnail
  geolocated photos, and insert one row

Already-indexed paths are skipped, so a run can be repeated or resumed
after a crash at any point.
"""

import logging
import os
import sqlite3
from dataclasses import dataclass

from file_operations import extract_metadata
from thumbnails import generate_thumbnail, normalize_image

import_logger = logging.getLogger('import')
error_logger = logging.getLogger('errors')

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.heic', '.heif', '.tiff', '.tif', '.bmp'}


@dataclass
class ScanSummary:
    """Final counters of one run."""
    total: int = 0
    processed: int = 0
    added: int = 0
    skipped: int = 0
    errors: int = 0
    completed: bool = False
    cancelled: bool = False

    def to_dict(self):
        return {
            'total': self.total,
            'processed': self.processed,
            'added': self.added,
            'skipped': self.skipped,
            'errors': self.errors,
            'completed': self.completed,
            'cancelled': self.cancelled
        }


def resolve_root(directory, base_dir):
    """Absolute roots are used as-is; relative roots are joined to base_dir."""
    if not os.path.isabs(directory):
        directory = os.path.join(base_dir, directory)
    return os.path.normpath(directory)


def is_image_file(path):
    """Check the extension against the recognized image formats (case-insensitive)."""
    return os.path.splitext(path)[1].lower() in IMAGE_EXTENSIONS


def _list_directory(directory):
    """Sorted directory entries, or None if the directory can't be read."""
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as e:
        error_logger.warning(f"Error reading directory {directory}: {e}")
        return None

    if not entries:
        import_logger.info(f"Directory is empty: {directory}")
    return entries


def walk_files(root):
    """
    Recursively list all regular files under root.

    Depth-first, entries sorted by name. Symlinked files are included,
    symlinked directories are not descended. Unreadable directories and entries
    that cannot be stat'ed are logged and skipped; the rest of the tree is
    still traversed.

    Args:
        root: Directory path

    Returns:
        list: Absolute file paths (empty if root doesn't exist)
    """
    if not os.path.isdir(root):
        error_logger.warning(f"Skipping non-existent directory: {root}")
        return []

    files = []
    entries = _list_directory(root)
    # One iterator per open directory; no recursion limit on deep trees
    stack = [iter(entries)] if entries else []

    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue

        try:
            # Directory symlinks are not followed (avoids cycles)
            if entry.is_dir(follow_symlinks=False):
                children = _list_directory(entry.path)
                if children:
                    stack.append(iter(children))
            elif entry.is_file():
                files.append(os.path.abspath(entry.path))
        except OSError as e:
            error_logger.warning(f"Could not access {entry.name}: {e}")

    return files


def find_image_files(root):
    """Image files under root, in traversal order."""
    return [path for path in walk_files(root) if is_image_file(path)]


def count_image_files(roots):
    """
    Quick count of image files across roots (for estimates).

    Returns:
        int: Number of image files found
    """
    return sum(len(find_image_files(root)) for root in roots)


def ingest_file(file_path, photo_index, thumbnails_dir, metadata_extractor=extract_metadata):
    """
    Process one candidate file and insert its row.

    Thumbnails are generated only for geolocated photos. A failed
    read/convert/thumbnail keeps the location and leaves thumbnail_path NULL.

    Args:
        file_path: Absolute path of a file not yet in the index
        photo_index: PhotoIndex instance
        thumbnails_dir: Thumbnail store directory
        metadata_extractor: Callable returning PhotoMetadata

    Returns:
        bool: True if a row was inserted
    """
    filename = os.path.basename(file_path)
    metadata = metadata_extractor(file_path)

    thumbnail_filename = None
    if metadata.has_gps:
        try:
            with open(file_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            error_logger.error(f"Error reading file {filename}: {e}")
            data = None

        if data is not None:
            normalized = normalize_image(data, os.path.splitext(filename)[1])
            if normalized is not None:
                thumbnail_filename = generate_thumbnail(normalized, file_path, thumbnails_dir)

        if thumbnail_filename is None:
            error_logger.warning(f"No thumbnail for geolocated photo {file_path}")

    return photo_index.insert_photo(
        file_path,
        latitude=metadata.latitude,
        longitude=metadata.longitude,
        timestamp=metadata.timestamp,
        thumbnail_path=thumbnail_filename
    )


def synchronize_roots(roots, photo_index, thumbnails_dir, scan_state, base_dir,
                      metadata_extractor=extract_metadata, stop_event=None):
    """
    Run one ingestion pass over all roots.

    The caller owns the Running/Idle transition; this only updates counters.

    Args:
        roots: Ordered list of root directory strings (from config)
        photo_index: PhotoIndex instance
        thumbnails_dir: Thumbnail store directory
        scan_state: ScanState to publish totals/progress to
        base_dir: Directory that relative roots are resolved against
        metadata_extractor: Callable returning PhotoMetadata
        stop_event: Optional threading.Event checked between files

    Returns:
        ScanSummary
    """
    summary = ScanSummary()

    # Phase 1: discover all candidates so progress has a fixed denominator
    candidates = []
    for directory in roots:
        root = resolve_root(directory, base_dir)
        found = find_image_files(root)
        import_logger.info(f"Found {len(found)} image files in {root}")
        candidates.extend(found)

    summary.total = len(candidates)
    scan_state.set_total(summary.total)
    print(f"\n🔄 LIBRARY SCAN: {summary.total} candidate files across {len(roots)} root(s)")

    # Phase 2: ingest anything not already indexed
    for file_path in candidates:
        if stop_event is not None and stop_event.is_set():
            import_logger.info("Scan cancelled between files")
            summary.cancelled = True
            return summary

        try:
            if photo_index.has_path(file_path):
                summary.skipped += 1
            elif ingest_file(file_path, photo_index, thumbnails_dir, metadata_extractor):
                summary.added += 1
                import_logger.info(f"Indexed {file_path}")
        except sqlite3.Error as e:
            # Not marked as indexed, so the next run retries it
            summary.errors += 1
            error_logger.error(f"Database error for {file_path}: {e}")
        except Exception as e:
            summary.errors += 1
            error_logger.error(f"Unexpected error processing file {file_path}: {e}", exc_info=True)
        finally:
            summary.processed += 1
            scan_state.advance()

    summary.completed = True
    print(f"✅ Scan complete: {summary.to_dict()}")
    return summary
