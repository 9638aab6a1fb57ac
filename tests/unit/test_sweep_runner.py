from __future__ import annotations

import threading
from unittest.mock import Mock

import pytest

from notion_dispatch_relay.relay.triggers.coordinator import DispatchCoordinator, SweepReport
from notion_dispatch_relay.server.sweep_runner import SweepRunner


def test_runner_sweeps_until_stopped() -> None:
    swept = threading.Event()
    coordinator = Mock(spec=DispatchCoordinator)

    def sweep() -> SweepReport:
        swept.set()
        return SweepReport()

    coordinator.run_scheduled_sweep.side_effect = sweep
    runner = SweepRunner(coordinator=coordinator, interval_seconds=0.01)

    runner.start()
    try:
        assert swept.wait(timeout=5)
        assert runner.running
    finally:
        runner.stop()

    assert not runner.running


def test_runner_survives_sweep_errors() -> None:
    calls = threading.Semaphore(0)
    coordinator = Mock(spec=DispatchCoordinator)

    def sweep() -> SweepReport:
        calls.release()
        raise RuntimeError("boom")

    coordinator.run_scheduled_sweep.side_effect = sweep
    runner = SweepRunner(coordinator=coordinator, interval_seconds=0.01)

    runner.start()
    try:
        assert calls.acquire(timeout=5)
        assert calls.acquire(timeout=5)
    finally:
        runner.stop()


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SweepRunner(coordinator=Mock(spec=DispatchCoordinator), interval_seconds=0)
