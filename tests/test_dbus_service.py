"""Tests for the D-Bus service's operation handling."""

from __future__ import annotations

import asyncio
import threading

import pytest

from reclaim.core.catalog import LocationCatalog
from reclaim.core.engine import ReclaimEngine
from reclaim.dbus_service import ReclaimDBusService
from reclaim.settings import EngineConfig

pytestmark = pytest.mark.usefixtures("isolate_storage")


@pytest.fixture
def service(tmp_path):
    engine = ReclaimEngine(LocationCatalog(), EngineConfig(quarantine_dir=tmp_path / "q"))
    return ReclaimDBusService(engine)


def _slow(started: threading.Event):
    def run(cancel: threading.Event) -> bool:
        started.set()
        return cancel.wait(5)

    return run


class TestCancellation:
    def test_new_operation_does_not_uncancel_running_one(self, service):
        async def scenario():
            loop = asyncio.get_running_loop()
            started = threading.Event()
            scan = asyncio.ensure_future(service._in_worker("scan", _slow(started)))
            await loop.run_in_executor(None, started.wait)

            assert service._cancel_running("scan") == 1
            clean_cancelled = await service._in_worker("clean", lambda cancel: cancel.is_set())
            return await scan, clean_cancelled

        scan_cancelled, clean_cancelled = asyncio.run(scenario())
        assert scan_cancelled is True
        assert clean_cancelled is False

    def test_cancel_targets_one_operation(self, service):
        async def scenario():
            loop = asyncio.get_running_loop()
            scan_started, clean_started = threading.Event(), threading.Event()
            scan = asyncio.ensure_future(service._in_worker("scan", _slow(scan_started)))
            clean = asyncio.ensure_future(service._in_worker("clean", _slow(clean_started)))
            await loop.run_in_executor(None, scan_started.wait)
            await loop.run_in_executor(None, clean_started.wait)

            service._cancel_running("clean")
            clean_cancelled = await clean
            assert not scan.done()
            service._cancel_running()
            return await scan, clean_cancelled

        scan_cancelled, clean_cancelled = asyncio.run(scenario())
        assert clean_cancelled is True
        assert scan_cancelled is True

    def test_finished_operations_are_forgotten(self, service):
        asyncio.run(service._in_worker("scan", lambda cancel: None))
        assert service._cancel_running() == 0

    def test_unknown_operation_ignored(self, service):
        assert service._cancel_running("defrag") == 0
