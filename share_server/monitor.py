from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Optional

from logger_config import setup_logger

logger = setup_logger()


class Monitor:
    """Counts server errors in a sliding window and alerts once the threshold is hit."""

    def __init__(self, failure_threshold: int, window_seconds: int = 60, alert_handler: Optional[Callable[[str], None]] = None):
        if failure_threshold <= 0:
            raise ValueError("Failure threshold must be positive")
        if window_seconds <= 0:
            raise ValueError("Window seconds must be positive")

        self._failure_threshold = failure_threshold
        self._window = timedelta(seconds=window_seconds)
        self._alert = alert_handler or logger.critical
        self._passes = 0
        self._failures = 0
        self._recent_failures = deque()

    def _recent(self) -> int:
        cutoff = datetime.now() - self._window
        while self._recent_failures and self._recent_failures[0] < cutoff:
            self._recent_failures.popleft()
        return len(self._recent_failures)

    def pass_(self) -> None:
        self._passes += 1

    def fail(self) -> None:
        self._failures += 1
        self._recent_failures.append(datetime.now())

        if self._recent() == self._failure_threshold:
            self._alert(
                f"{self._failure_threshold} server errors within {int(self._window.total_seconds())}s "
                f"(total passes: {self._passes}, total failures: {self._failures})"
            )

    @property
    def stats(self) -> dict:
        return {
            'total_passes': self._passes,
            'total_failures': self._failures,
            'failures_in_window': self._recent(),
            'window_seconds': int(self._window.total_seconds()),
        }
