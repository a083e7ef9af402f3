"""
CPU Throttle — Voluntary CPU usage limiter for OCR workers.

A single instance is shared by every OCR worker thread. Workers call
`throttle_if_needed()` between frames; at most one of them samples CPU
usage per check interval, and workers sleep while the system is over
budget.
"""

import time
import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class CPUThrottle:
    """
    Thread-safe CPU budget shared by the OCR worker pool.

    Keeps long OCR batches from pinning every core on laptops and
    from starving an interactive session running alongside.
    """

    def __init__(self, max_percent: int = 70, check_interval: float = 2.0):
        """
        Args:
            max_percent: CPU usage percent above which workers pause.
                Values of 100 or more disable throttling.
            check_interval: Minimum seconds between CPU usage samples.
        """
        self.max_percent = max_percent
        self.check_interval = check_interval
        self._psutil = None
        self._lock = threading.Lock()
        self._last_check = float("-inf")
        self._sleep_until = 0.0
        self._throttle_count = 0

    def _ensure_psutil(self):
        if self._psutil is None:
            try:
                import psutil
                self._psutil = psutil
            except ImportError:
                logger.warning(
                    "psutil not installed — OCR CPU throttling disabled. "
                    "Install with: pip install psutil"
                )
                self._psutil = False

    def throttle_if_needed(self):
        """Sleep the calling worker if the pool is over its CPU budget."""
        if self.max_percent >= 100:
            return

        with self._lock:
            self._ensure_psutil()
            if self._psutil is False:
                return

            now = time.monotonic()
            if now - self._last_check >= self.check_interval:
                self._last_check = now
                usage = self._psutil.cpu_percent(interval=None)
                if usage > self.max_percent:
                    self._throttle_count += 1
                    pause = min(2.0, (usage - self.max_percent) / 100.0 + 0.3)
                    self._sleep_until = now + pause
                    if self._throttle_count <= 3 or self._throttle_count % 10 == 0:
                        logger.debug(
                            f"CPU at {usage:.0f}% (limit: {self.max_percent}%), "
                            f"pausing OCR workers {pause:.1f}s "
                            f"(throttle #{self._throttle_count})"
                        )

            remaining = self._sleep_until - now

        if remaining > 0:
            time.sleep(remaining)

    def get_usage(self) -> Optional[float]:
        """Current CPU usage percentage, or None without psutil."""
        with self._lock:
            self._ensure_psutil()
        if self._psutil is False:
            return None
        return self._psutil.cpu_percent(interval=0.1)

    @property
    def total_throttles(self) -> int:
        return self._throttle_count
