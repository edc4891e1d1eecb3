import os
import stat
import sys

import pytest

from funcrun.function.models import RunnerConfig
from funcrun.utils.net import PortAllocator

FAKE_ENGINE_SCRIPT = os.path.join(os.path.dirname(__file__), "resources", "fake_engine.py")


@pytest.fixture
def fake_engine(tmp_path) -> str:
    """
    Returns the path of an executable that behaves like the execution engine (see resources/fake_engine.py).
    """
    engine = tmp_path / "fake-engine"
    engine.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_ENGINE_SCRIPT}" "$@"\n')
    engine.chmod(engine.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(engine)


@pytest.fixture
def runner_config(tmp_path, fake_engine) -> RunnerConfig:
    return RunnerConfig(
        work_dir=str(tmp_path / "work"),
        engine_path=fake_engine,
        boot_timeout=15,
        readiness_poll_interval=0.05,
        invoke_timeout=10,
        drain_join_timeout=5,
    )


@pytest.fixture(scope="session")
def port_allocator() -> PortAllocator:
    # stay clear of the default window, which may be used by a running funcrun
    return PortAllocator(base=30000, window=20000)


@pytest.fixture
def log_lines():
    """A list collecting log lines, together with a listener appending to it."""
    lines = []
    return lines, lines.append
