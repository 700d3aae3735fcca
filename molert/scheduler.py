#!/usr/bin/env python3
"""
molert - Scan scheduler

A background thread ticks every ``frequency`` seconds and starts one scan per
tick in its own thread. Ticks never wait for a previous scan to finish, so a
slow store or webhook can lead to overlapping scans and, within one interval,
duplicate notifications.
"""

import logging
import threading
import time
import uuid
from typing import Optional

from molert.logging_utils import CorrelationID
from molert.metrics import METRIC_SCAN_DURATION, METRIC_SCANS
from molert.tracing_utils import create_span, set_span_attribute

logger = logging.getLogger(__name__)


def run_scan(registry, notifier) -> int:
    """
    One scan: list the registry and notify every eligible alert.

    Silenced alerts are skipped. Returns the number of messages delivered.
    """
    scan_id = uuid.uuid4().hex[:8]
    CorrelationID.set(f"scan-{scan_id}")
    METRIC_SCANS.inc()
    start_time = time.time()

    try:
        with create_span("molert.scan", attributes={"scan.id": scan_id}):
            states = registry.list()
            eligible = [state for state in states if state.eligible]

            sent = 0
            for state in eligible:
                sent += notifier.notify(state.alert)

            set_span_attribute("scan.alerts", len(states))
            set_span_attribute("scan.sent", sent)

        logger.info(
            f"Scan finished: {len(states)} known, {len(eligible)} eligible, {sent} messages sent"
        )
        return sent
    finally:
        METRIC_SCAN_DURATION.observe(time.time() - start_time)
        CorrelationID.clear()


class Scheduler:
    """Fixed-interval driver for ``run_scan``."""

    def __init__(self, registry, notifier, frequency: int):
        self.registry = registry
        self.notifier = notifier
        self.frequency = frequency
        self.stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _scan(self):
        try:
            run_scan(self.registry, self.notifier)
        except Exception as e:
            logger.error(f"Unhandled scan error: {e}", exc_info=True)

    def _loop(self):
        logger.info(f"Scheduler started. Scanning every {self.frequency}s.")
        while not self.stop_event.wait(self.frequency):
            threading.Thread(target=self._scan, daemon=True, name="Scan").start()
        logger.info("Scheduler stopped.")

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self.stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="Scheduler")
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 5.0) -> None:
        """Stop ticking. Scans already running finish on their own."""
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
