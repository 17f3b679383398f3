"""
Monitor Scheduler.

A single repeating timer that triggers an ingestion job for one subject.
Ticks never queue or overlap: a tick that fires while the previous job is
still running is skipped. stop() only prevents future ticks; a job already
running is left to finish.
"""

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class MonitorScheduler:
    def __init__(self, job: Callable[[str], object]):
        """
        Args:
            job: Called with the subject ID on every tick that is not skipped.
        """
        self._job = job
        self._stop_event = threading.Event()
        self._timer_thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._busy = False

        self.subject_id: str | None = None
        self.interval_seconds: float = 30.0
        self.runs = 0
        self.skipped_ticks = 0
        self.last_run_at: float | None = None
        self.last_error: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, subject_id: str, interval_seconds: float = 30.0) -> None:
        """Starts ticking for subject_id. A running schedule is replaced."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.stop()

        with self._lock:
            self.subject_id = subject_id
            self.interval_seconds = float(interval_seconds)
            self._stop_event = threading.Event()
            self._timer_thread = threading.Thread(
                target=self._timer_loop,
                args=(self._stop_event, subject_id, self.interval_seconds),
                name="MonitorScheduler",
                daemon=True,
            )
            self._timer_thread.start()
        logger.info(f"Monitoring started for '{subject_id}' every {interval_seconds}s")

    def stop(self) -> None:
        with self._lock:
            thread = self._timer_thread
            self._timer_thread = None
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout=2.0)
            logger.info(f"Monitoring stopped for '{self.subject_id}'")

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._timer_thread is not None and self._timer_thread.is_alive()

    @property
    def is_busy(self) -> bool:
        with self._lock:
            return self._busy

    def status(self) -> dict:
        with self._lock:
            busy = self._busy
        return {
            "running": self.is_running,
            "busy": busy,
            "subject": self.subject_id,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "skipped_ticks": self.skipped_ticks,
            "last_run_at": self.last_run_at,
            "last_error": self.last_error,
        }

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def _timer_loop(self, stop_event: threading.Event, subject_id: str, interval: float) -> None:
        while not stop_event.wait(interval):
            self.tick(subject_id)

    def tick(self, subject_id: str) -> bool:
        """
        Dispatches one job run unless the previous one is still busy.

        Returns:
            True if a run was dispatched, False if the tick was skipped.
        """
        with self._lock:
            if self._busy:
                self.skipped_ticks += 1
                logger.debug("Previous monitoring run still busy, skipping tick")
                return False
            self._busy = True

        worker = threading.Thread(
            target=self._run_job, args=(subject_id,), name="MonitorRun", daemon=True
        )
        worker.start()
        return True

    def _run_job(self, subject_id: str) -> None:
        try:
            self._job(subject_id)
            self.last_error = None
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Monitoring run for '{subject_id}' failed: {e}", exc_info=True)
        finally:
            with self._lock:
                self.runs += 1
                self.last_run_at = time.time()
                self._busy = False
