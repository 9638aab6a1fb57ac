"""Background thread that advances delayed triggers on a fixed cadence."""

from __future__ import annotations

import logging
import threading

from notion_dispatch_relay.relay.triggers.coordinator import DispatchCoordinator

logger = logging.getLogger(__name__)


class SweepRunner:
    def __init__(self, *, coordinator: DispatchCoordinator, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._coordinator = coordinator
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="relay-sweep", daemon=True)
        self._thread.start()
        logger.info("Sweep runner started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Sweep runner stopped")

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._coordinator.run_scheduled_sweep()
            except Exception:
                logger.exception("Scheduled sweep failed")
