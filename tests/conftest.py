from __future__ import annotations

import io
import logging

import pytest

from tests.fakes import FakeFeatures, FakePackageManager, FakeRegistry
from workstation_provisioner.logging_utils import LogSink, SinkHandler
from workstation_provisioner.registry import StepContext


@pytest.fixture
def console() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def sink(tmp_path, console) -> LogSink:
    s = LogSink(console=console, use_colors=False)
    s.initialize([tmp_path / "logs" / "run.log"])
    return s


@pytest.fixture
def ctx(sink) -> StepContext:
    return StepContext(
        sink=sink,
        package_managers={"choco": FakePackageManager(), "winget": FakePackageManager()},
        features=FakeFeatures(),
        registry=FakeRegistry(),
    )


@pytest.fixture(autouse=True)
def _restore_root_handlers():
    root = logging.getLogger()
    level = root.level
    yield
    for h in list(root.handlers):
        if isinstance(h, SinkHandler):
            root.removeHandler(h)
    root.setLevel(level)
