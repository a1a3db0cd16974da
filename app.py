#!/usr/bin/env python3
"""
Photo Map - Flask Server with Database API

Background scans index every configured photo directory; the API serves the
index, thumbnails and raw files to the map UI.

Start with `python app.py`. The scan timer, file logging and path setup run in
the `__main__` block only; under `flask run` or a WSGI host, call
update_app_paths(), configure_logging() and ORCHESTRATOR.start_scheduler()
from the hosting code.

Data paths default to PHOTO_MAP_HOME (or the working directory) and can be
set one by one through the PHOTO_MAP_* environment variables.
"""

from flask import Flask, send_from_directory, jsonify, request, send_file
import atexit
import os
import logging
from logging.handlers import RotatingFileHandler

from file_operations import check_exiftool, extract_metadata
from library_config import load_config, save_config, get_scan_roots
from operation_state import ScanOrchestrator, TriggerResult, SCAN_INTERVAL_SECONDS
from photo_index import PhotoIndex, get_db_connection

app = Flask(__name__, static_folder='static')

# Paths (relative to PHOTO_MAP_HOME, else the working directory)
BASE_DIR = os.path.abspath(os.environ.get('PHOTO_MAP_HOME', os.getcwd()))

# Overridable from the environment; rebound by update_app_paths()
DB_PATH = os.environ.get('PHOTO_MAP_DB_PATH', os.path.join(BASE_DIR, 'photos.db'))
THUMBNAILS_DIR = os.environ.get('PHOTO_MAP_THUMBNAILS_DIR', os.path.join(BASE_DIR, 'thumbnails'))
CONFIG_FILE = os.environ.get('PHOTO_MAP_CONFIG', os.path.join(BASE_DIR, 'config.json'))
LOG_DIR = os.environ.get('PHOTO_MAP_LOG_DIR', os.path.join(BASE_DIR, 'logs'))
SCAN_INTERVAL = int(os.environ.get('PHOTO_MAP_SCAN_INTERVAL', SCAN_INTERVAL_SECONDS))
PORT = int(os.environ.get('PORT', 3000))

EXIFTOOL_AVAILABLE = None

# ============================================================================
# LOGGING CONFIGURATION (print() banners + persistent logs)
# ============================================================================

app.logger.setLevel(logging.INFO)

# Console-only until configure_logging() attaches file handlers
import_logger = logging.getLogger('import')
import_logger.setLevel(logging.INFO)

error_logger = logging.getLogger('errors')
error_logger.setLevel(logging.WARNING)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configure_logging(log_dir):
    """Attach rotating file handlers to the import and error loggers."""
    os.makedirs(log_dir, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    for logger, filename in ((import_logger, 'import.log'), (error_logger, 'errors.log')):
        log_path = os.path.join(log_dir, filename)
        # Re-configuring for the same directory must not duplicate output
        if any(getattr(h, 'baseFilename', None) == os.path.abspath(log_path) for h in logger.handlers):
            continue
        handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


def _build_orchestrator(metadata_extractor=extract_metadata):
    return ScanOrchestrator(
        DB_PATH,
        THUMBNAILS_DIR,
        lambda: get_scan_roots(CONFIG_FILE),
        BASE_DIR,
        metadata_extractor=metadata_extractor
    )


ORCHESTRATOR = _build_orchestrator()


def update_app_paths(db_path, thumbnails_dir, config_file, metadata_extractor=extract_metadata):
    """Update all global path variables and rebuild the scan orchestrator"""
    global DB_PATH, THUMBNAILS_DIR, CONFIG_FILE, ORCHESTRATOR

    DB_PATH = db_path
    THUMBNAILS_DIR = thumbnails_dir
    CONFIG_FILE = config_file

    os.makedirs(THUMBNAILS_DIR, exist_ok=True)

    conn = get_db_connection(DB_PATH)
    try:
        PhotoIndex(conn).ensure_schema()
    finally:
        conn.close()

    ORCHESTRATOR = _build_orchestrator(metadata_extractor)
    return ORCHESTRATOR


def _parse_bool_arg(value):
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes'):
        return True
    if lowered in ('0', 'false', 'no'):
        return False
    raise ValueError(f"invalid boolean: {value!r}")


# ============================================================================
# PHOTOS API
# ============================================================================

@app.route('/api/photos')
def get_photos():
    """List indexed photos, optionally filtered with ?has_gps=0|1"""
    try:
        has_gps = _parse_bool_arg(request.args.get('has_gps'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    try:
        conn = get_db_connection(DB_PATH)
        try:
            photos = PhotoIndex(conn).list_photos(has_gps=has_gps)
        finally:
            conn.close()
        return jsonify(photos)
    except Exception as e:
        app.logger.error(f"Error fetching photos: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/photos-raw/<int:photo_id>')
def get_photo_raw(photo_id):
    """Serve the original file (fallback when a geolocated photo has no thumbnail)"""
    try:
        conn = get_db_connection(DB_PATH)
        try:
            photo = PhotoIndex(conn).get_photo(photo_id)
        finally:
            conn.close()
    except Exception as e:
        app.logger.error(f"Error fetching photo {photo_id}: {e}")
        return jsonify({'error': str(e)}), 500

    if photo and os.path.exists(photo['path']):
        return send_file(photo['path'])
    return jsonify({'error': 'Not found'}), 404


@app.route('/api/thumbnails/<path:filename>')
def get_thumbnail(filename):
    """Serve a generated thumbnail"""
    return send_from_directory(THUMBNAILS_DIR, filename)


@app.route('/api/photos/<int:photo_id>/location', methods=['POST'])
def update_photo_location(photo_id):
    """Manually set a photo's location (marks it as geolocated)"""
    data = request.get_json(silent=True) or {}
    try:
        conn = get_db_connection(DB_PATH)
        try:
            updated = PhotoIndex(conn).update_location(photo_id, data.get('latitude'), data.get('longitude'))
        finally:
            conn.close()
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        app.logger.error(f"Error updating location for photo {photo_id}: {e}")
        return jsonify({'error': str(e)}), 500

    if not updated:
        return jsonify({'error': 'Photo not found'}), 404

    app.logger.info(f"Updated location for photo {photo_id}")
    return jsonify({'success': True})


# ============================================================================
# CONFIG API
# ============================================================================

@app.route('/api/config', methods=['GET'])
def get_config():
    """Get current scan configuration"""
    return jsonify(load_config(CONFIG_FILE))


@app.route('/api/config', methods=['POST'])
def update_config():
    """Replace the list of photo directories (picked up by the next scan)"""
    data = request.get_json(silent=True) or {}
    directories = data.get('photosDirectories')
    if not isinstance(directories, list) or not all(isinstance(d, str) for d in directories):
        return jsonify({'error': 'photosDirectories must be a list of strings'}), 400

    try:
        config = save_config(CONFIG_FILE, directories)
    except OSError as e:
        error_logger.error(f"Saving config failed: {e}")
        return jsonify({'error': str(e)}), 500

    import_logger.info(f"Photo directories updated: {config['photosDirectories']}")
    return jsonify(config)


# ============================================================================
# SCAN API
# ============================================================================

@app.route('/api/scan-status')
def scan_status():
    """Current scan state (never blocks on a running scan)"""
    return jsonify(ORCHESTRATOR.state.snapshot())


@app.route('/api/scan', methods=['POST'])
def trigger_scan():
    """Start a scan in the background, or 409 if one is running"""
    if ORCHESTRATOR.trigger() is TriggerResult.CONFLICT:
        return jsonify({'error': 'Scan already in progress'}), 409
    return jsonify({'success': True, 'message': 'Scan started'})


@app.route('/api/health')
def health():
    """Report exiftool availability and index size"""
    global EXIFTOOL_AVAILABLE
    if EXIFTOOL_AVAILABLE is None:
        EXIFTOOL_AVAILABLE = check_exiftool()

    try:
        conn = get_db_connection(DB_PATH)
        try:
            photo_count = PhotoIndex(conn).count_photos()
        finally:
            conn.close()
    except Exception as e:
        app.logger.error(f"Health check failed: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify({
        'status': 'ok',
        'exiftool': EXIFTOOL_AVAILABLE,
        'photos': photo_count
    })


if __name__ == '__main__':
    print("\n🗺️  Photo Map Starting...")

    update_app_paths(DB_PATH, THUMBNAILS_DIR, CONFIG_FILE)
    configure_logging(LOG_DIR)

    print(f"🗄️  Database: {DB_PATH}")
    print(f"🖼️  Thumbnails: {THUMBNAILS_DIR}")
    print(f"📁 Photo directories: {get_scan_roots(CONFIG_FILE)}")

    EXIFTOOL_AVAILABLE = check_exiftool()
    if not EXIFTOOL_AVAILABLE:
        print("⚠️  exiftool not found - photos will be indexed without location")

    # Initial scan on startup, then every SCAN_INTERVAL seconds
    ORCHESTRATOR.start_scheduler(SCAN_INTERVAL, run_immediately=True)
    atexit.register(lambda: ORCHESTRATOR.shutdown(timeout=10))

    print(f"🌐 Open: http://localhost:{PORT}\n")

    # No reloader: it would start a second scheduler in the child process
    app.run(port=PORT, host='0.0.0.0', threaded=True)
