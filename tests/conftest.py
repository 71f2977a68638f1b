"""Shared test fixtures."""

from __future__ import annotations

from typing import Callable, List

import pytest

from spawner.local.manifest import ProcessSpec
from spawner.local.supervisor import ProcessHandle, Supervisor
from spawner.local.supervisor.shutdown import graceful_shutdown_sequence


@pytest.fixture
def make_handle() -> Callable[..., ProcessHandle]:
    """Builds handles and makes sure none of their processes outlive the test."""
    handles: List[ProcessHandle] = []

    def factory(spec: ProcessSpec, **kwargs) -> ProcessHandle:
        handle = ProcessHandle(spec, **kwargs)
        handles.append(handle)
        return handle

    yield factory
    graceful_shutdown_sequence(handles, timeout=2)


@pytest.fixture
def make_supervisor() -> Callable[..., Supervisor]:
    """Builds supervisors and stops all of their processes after the test."""
    supervisors: List[Supervisor] = []

    def factory(specs, **kwargs) -> Supervisor:
        kwargs.setdefault("shutdown_timeout", 2)
        supervisor = Supervisor(specs, **kwargs)
        supervisors.append(supervisor)
        return supervisor

    yield factory
    for supervisor in supervisors:
        supervisor.stop_all()
