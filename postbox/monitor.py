from typing import Callable, Optional
from datetime import datetime, timedelta
from collections import deque
from postbox.logger_config import setup_logger

logger = setup_logger()


class FailureMonitor:
    def __init__(self, failure_threshold: int, window_seconds: int = 60, alert_handler: Optional[Callable[[str], None]] = None):
        """
        Track storage failures and raise an alert when they pile up.

        Args:
            failure_threshold: Number of failures within the window before raising an alert
            window_seconds: Time window in seconds to count failures in
            alert_handler: Optional callback receiving the alert text. If None, logs it at CRITICAL
        """
        if failure_threshold <= 0:
            raise ValueError("Failure threshold must be positive")
        if window_seconds <= 0:
            raise ValueError("Window seconds must be positive")

        self._failure_threshold = failure_threshold
        self._window_seconds = window_seconds
        self._alert_handler = alert_handler or self._default_alert_handler
        self._total_stored = 0
        self._total_failures = 0
        self._failure_timestamps = deque()
        self._last_status_time = datetime.now()

    def _clean_old_failures(self) -> None:
        """Remove failures outside the time window."""
        window_start = datetime.now() - timedelta(seconds=self._window_seconds)
        while self._failure_timestamps and self._failure_timestamps[0] < window_start:
            self._failure_timestamps.popleft()

    def _default_alert_handler(self, message: str) -> None:
        logger.critical(message)

    def record_success(self) -> None:
        self._total_stored += 1
        self._last_status_time = datetime.now()
        self._clean_old_failures()

    def record_failure(self) -> None:
        """
        Record a failed store.
        Alerts once when the failures inside the window reach the threshold.
        """
        now = datetime.now()
        self._failure_timestamps.append(now)
        self._total_failures += 1
        self._last_status_time = now

        self._clean_old_failures()

        if len(self._failure_timestamps) == self._failure_threshold:
            self._alert_handler(
                f"{self._failure_threshold} storage failures within {self._window_seconds}s "
                f"(stored: {self._total_stored}, failed: {self._total_failures})"
            )

    @property
    def recent_failures(self) -> int:
        self._clean_old_failures()
        return len(self._failure_timestamps)

    @property
    def stats(self) -> dict:
        self._clean_old_failures()
        return {
            'total_stored': self._total_stored,
            'total_failures': self._total_failures,
            'recent_failures': len(self._failure_timestamps),
            'last_status_time': int(self._last_status_time.timestamp()),
            'window_seconds': self._window_seconds
        }
