"""
Operation State - Exclusive library scans with observable progress

Handles:
- Scan lifecycle (idle → running → idle), even when a run fails
- Mutual exclusion between the periodic timer and manual triggers
- Progress counters readable at any time as a consistent snapshot
- Cooperative cancellation between files on shutdown

Usage:
    orchestrator = ScanOrchestrator(db_path, thumbnails_dir, config_provider, base_dir)
    orchestrator.start_scheduler()            # every 5 minutes
    result = orchestrator.trigger()           # TriggerResult.STARTED / CONFLICT
    status = orchestrator.state.snapshot()
    orchestrator.shutdown()
"""

import logging
import threading
from datetime import datetime, timezone
from enum import Enum

from file_operations import extract_metadata
from library_sync import synchronize_roots
from photo_index import PhotoIndex, get_db_connection

import_logger = logging.getLogger('import')
error_logger = logging.getLogger('errors')

SCAN_INTERVAL_SECONDS = 5 * 60


class ScanStatus(Enum):
    """Scan status states"""
    IDLE = 'idle'        # No scan active
    RUNNING = 'running'  # A scan owns the state


class TriggerResult(Enum):
    """Outcome of a request to start a scan"""
    STARTED = 'started'
    CONFLICT = 'conflict'  # Another scan is already running


class ScanState:
    """
    Process-wide scan state guarded by a single lock.

    Only the orchestrator writes; anyone may call snapshot().
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = ScanStatus.IDLE
        self._last_completed_at = None
        self._total_candidates = 0
        self._processed_count = 0

    @property
    def running(self):
        with self._lock:
            return self._status is ScanStatus.RUNNING

    def try_begin(self):
        """
        Atomically claim the state for a new run.

        Returns:
            bool: False if a run is already active (counters left untouched)
        """
        with self._lock:
            if self._status is ScanStatus.RUNNING:
                return False
            self._status = ScanStatus.RUNNING
            self._total_candidates = 0
            self._processed_count = 0
            return True

    def set_total(self, total):
        with self._lock:
            self._total_candidates = total

    def advance(self):
        """Count one processed file (never past the run's total)."""
        with self._lock:
            if self._processed_count < self._total_candidates:
                self._processed_count += 1

    def finish(self, completed):
        """
        Return to idle. Counters keep their final values.

        Args:
            completed: True if every root was processed (records completion time)
        """
        with self._lock:
            self._status = ScanStatus.IDLE
            if completed:
                self._last_completed_at = datetime.now(timezone.utc).isoformat()

    def snapshot(self):
        """
        Get a consistent view of the state.

        Returns:
            dict: {running, lastCompletedAt, totalCandidates, processedCount}
        """
        with self._lock:
            return {
                'running': self._status is ScanStatus.RUNNING,
                'lastCompletedAt': self._last_completed_at,
                'totalCandidates': self._total_candidates,
                'processedCount': self._processed_count
            }


class ScanOrchestrator:
    """
    Owns the scan state and runs scans one at a time.

    Each run opens its own database connection, so it can execute on a
    background thread while request threads read the index.
    """

    def __init__(self, db_path, thumbnails_dir, config_provider, base_dir,
                 metadata_extractor=extract_metadata):
        """
        Initialize scan orchestrator.

        Args:
            db_path: SQLite database path
            thumbnails_dir: Thumbnail store directory
            config_provider: Callable returning the current list of root directories
            base_dir: Directory that relative roots are resolved against
            metadata_extractor: Callable returning PhotoMetadata for a path
        """
        self.db_path = db_path
        self.thumbnails_dir = thumbnails_dir
        self.config_provider = config_provider
        self.base_dir = base_dir
        self.metadata_extractor = metadata_extractor

        self.state = ScanState()
        self.last_summary = None

        self._stop_event = threading.Event()
        self._worker = None
        self._scheduler = None

    def run_scan(self):
        """
        Run one exclusive scan in the calling thread.

        Returns:
            ScanSummary, or None if another scan is running or the run failed early
        """
        if not self.state.try_begin():
            import_logger.info("Scan already in progress")
            return None
        return self._execute()

    def trigger(self):
        """
        Start a scan on a background thread.

        Returns:
            TriggerResult: STARTED, or CONFLICT if a scan is already running
        """
        if not self.state.try_begin():
            return TriggerResult.CONFLICT

        worker = threading.Thread(target=self._execute, daemon=True, name="LibraryScan")
        self._worker = worker
        try:
            worker.start()
        except RuntimeError:
            self.state.finish(completed=False)
            raise

        return TriggerResult.STARTED

    def wait(self, timeout=None):
        """
        Wait for the current background scan (if any) to finish.

        Returns:
            bool: True if no scan thread is still alive
        """
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
            return not worker.is_alive()
        return True

    def _execute(self):
        """Run body. State always settles to idle, whatever happens inside."""
        summary = None
        try:
            import_logger.info("Starting library scan")

            roots = list(self.config_provider())
            if not roots:
                error_logger.error("No photo directories configured, scan aborted")
                return None

            conn = get_db_connection(self.db_path)
            try:
                photo_index = PhotoIndex(conn)
                photo_index.ensure_schema()
                summary = synchronize_roots(
                    roots,
                    photo_index,
                    self.thumbnails_dir,
                    self.state,
                    self.base_dir,
                    metadata_extractor=self.metadata_extractor,
                    stop_event=self._stop_event
                )
            finally:
                conn.close()

            self.last_summary = summary
            import_logger.info(f"Library scan finished: {summary.to_dict()}")
            return summary

        except Exception as e:
            error_logger.error(f"Scan error: {e}", exc_info=True)
            return None
        finally:
            self.state.finish(completed=summary is not None and summary.completed)

    def _scheduled_tick(self):
        # A busy state means the tick is dropped, never queued
        if self.trigger() is TriggerResult.CONFLICT:
            import_logger.info("Scheduled scan skipped: scan already in progress")

    def _scheduler_loop(self, interval, run_immediately):
        if run_immediately:
            self._scheduled_tick()
        while not self._stop_event.wait(interval):
            self._scheduled_tick()

    def start_scheduler(self, interval=SCAN_INTERVAL_SECONDS, run_immediately=True):
        """
        Start the periodic scan timer (daemon thread).

        Args:
            interval: Seconds between scan attempts
            run_immediately: Also attempt a scan right away (startup scan)
        """
        if self._scheduler is not None and self._scheduler.is_alive():
            return

        self._scheduler = threading.Thread(
            target=self._scheduler_loop,
            args=(interval, run_immediately),
            daemon=True,
            name="ScanScheduler"
        )
        self._scheduler.start()
        import_logger.info(f"Scan scheduler started (every {interval}s)")

    def request_stop(self):
        """
        Stop the timer and ask a running scan to stop after its current file.

        Final for this orchestrator: later scans stop before their first file.
        """
        self._stop_event.set()

    def shutdown(self, timeout=None):
        """
        Request a stop, then wait for the timer and scan threads to exit.

        Args:
            timeout: Max seconds to wait for each thread
        """
        self.request_stop()
        if self._scheduler is not None:
            self._scheduler.join(timeout)
        self.wait(timeout)
