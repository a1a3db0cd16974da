#!/usr/bin/env python3
"""
Run one library scan from the command line
- Reads photo directories from config.json
- Skips files already in the index (safe to interrupt and re-run)
- Shows progress bar
"""

import argparse
import os
import sys

from tqdm import tqdm

from file_operations import check_exiftool
from library_config import get_scan_roots
from library_sync import count_image_files, resolve_root
from operation_state import ScanOrchestrator, TriggerResult

# Paths (relative to PHOTO_MAP_HOME, else the working directory)
BASE_DIR = os.path.abspath(os.environ.get('PHOTO_MAP_HOME', os.getcwd()))
DB_PATH = os.environ.get('PHOTO_MAP_DB_PATH', os.path.join(BASE_DIR, 'photos.db'))
THUMBNAILS_DIR = os.environ.get('PHOTO_MAP_THUMBNAILS_DIR', os.path.join(BASE_DIR, 'thumbnails'))
CONFIG_FILE = os.environ.get('PHOTO_MAP_CONFIG', os.path.join(BASE_DIR, 'config.json'))


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Index photo directories into the photo map database.")
    parser.add_argument('--db', default=DB_PATH, help="SQLite database path")
    parser.add_argument('--thumbnails', default=THUMBNAILS_DIR, help="Thumbnail output directory")
    parser.add_argument('--config', default=CONFIG_FILE, help="config.json with photosDirectories")
    parser.add_argument('--count-only', action='store_true', help="Only count candidate files")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    print("🗺️  Photo Map Library Scan")
    print("=" * 50)

    roots = get_scan_roots(args.config)
    print("\n📁 Photo directories:")
    for directory in roots:
        print(f"   {resolve_root(directory, BASE_DIR)}")

    if args.count_only:
        total = count_image_files([resolve_root(d, BASE_DIR) for d in roots])
        print(f"\n📊 {total:,} image files found")
        return 0

    if not check_exiftool():
        print("⚠️  exiftool not found - photos will be indexed without location or date")

    os.makedirs(args.thumbnails, exist_ok=True)
    orchestrator = ScanOrchestrator(args.db, args.thumbnails, lambda: get_scan_roots(args.config), BASE_DIR)

    if orchestrator.trigger() is TriggerResult.CONFLICT:
        print("❌ A scan is already running")
        return 1

    try:
        with tqdm(desc="Progress", unit="photo") as bar:
            while not orchestrator.wait(timeout=0.5):
                status = orchestrator.state.snapshot()
                bar.total = status['totalCandidates']
                bar.n = status['processedCount']
                bar.refresh()
            status = orchestrator.state.snapshot()
            bar.total = status['totalCandidates']
            bar.n = status['processedCount']
            bar.refresh()
    except KeyboardInterrupt:
        print("\n⏹️  Stopping after the current file...")
        orchestrator.shutdown()

    summary = orchestrator.last_summary
    print("\n" + "=" * 50)
    if summary is None:
        print("❌ Scan did not complete (see errors log)")
        return 1

    print("✅ Scan complete!" if summary.completed else "⏹️  Scan stopped early")
    print(f"   Added: {summary.added:,}")
    print(f"   Already indexed: {summary.skipped:,}")
    print(f"   Errors: {summary.errors:,}")
    print(f"   Total: {summary.total:,}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
