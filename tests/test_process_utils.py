"""Tests for launch descriptors, environment expansion and exit interpretation."""

from __future__ import annotations

import signal

import pytest

from spawner.local.errors import EnvExpansionError, SpawnError
from spawner.local.manifest import ProcessSpec
from spawner.local.supervisor.process_utils import (
    LaunchDescriptor,
    PollResult,
    ProcessState,
    build_launch_descriptor,
    expand_env,
    get_process_title,
    interpret_returncode,
    launch_process,
)


# ── Environment Expansion ─────────────────────────────────────────────

class TestExpandEnv:
    """Tests for $VAR expansion in environment overrides."""

    def test_home_bin_expansion(self) -> None:
        result = expand_env({"PATH": "$HOME/bin"}, {"HOME": "/home/tester"})
        assert result == {"PATH": "/home/tester/bin"}

    def test_braced_reference(self) -> None:
        result = expand_env({"DATA": "${BASE}_data"}, {"BASE": "/srv/app"})
        assert result == {"DATA": "/srv/app_data"}

    def test_plain_values_unchanged(self) -> None:
        assert expand_env({"MODE": "production"}, {}) == {"MODE": "production"}

    def test_lone_dollar_kept_literal(self) -> None:
        assert expand_env({"PRICE": "cost: 5$", "FLAG": "a$-b"}, {}) == {"PRICE": "cost: 5$", "FLAG": "a$-b"}

    def test_double_dollar_not_collapsed(self) -> None:
        assert expand_env({"PRICE": "$$5"}, {}) == {"PRICE": "$$5"}

    def test_unclosed_brace_kept_literal(self) -> None:
        assert expand_env({"X": "${HOME"}, {"HOME": "/home/tester"}) == {"X": "${HOME"}

    def test_unset_variable_raises(self) -> None:
        with pytest.raises(EnvExpansionError, match="SPAWNER_DOES_NOT_EXIST"):
            expand_env({"X": "$SPAWNER_DOES_NOT_EXIST/bin"}, {})

    def test_unset_variable_is_not_silently_empty(self) -> None:
        with pytest.raises(EnvExpansionError):
            expand_env({"X": "prefix-${MISSING}"}, {"OTHER": "1"})

    def test_uses_os_environ_by_default(self, monkeypatch) -> None:
        monkeypatch.setenv("SPAWNER_TEST_HOME", "/tmp/spawner-home")
        assert expand_env({"P": "$SPAWNER_TEST_HOME/bin"}) == {"P": "/tmp/spawner-home/bin"}


# ── Launch Descriptor ─────────────────────────────────────────────────

class TestLaunchDescriptor:
    """Tests for building the descriptor reused on every spawn."""

    def test_title_without_name_is_path(self) -> None:
        assert get_process_title(ProcessSpec(path="/bin/sleep")) == "/bin/sleep"

    def test_title_tagged_with_name(self) -> None:
        spec = ProcessSpec(path="/bin/sleep", name="napper")
        assert get_process_title(spec) == "[spawner: napper] -> /bin/sleep"

    def test_descriptor_argv_and_env(self) -> None:
        spec = ProcessSpec(
            path="/bin/sleep",
            name="napper",
            args=("10",),
            env={"BIN": "$HOME/bin"},
            stdout="out.log",
        )
        descriptor = build_launch_descriptor(spec, {"HOME": "/home/tester", "LANG": "C"})

        assert descriptor.executable == "/bin/sleep"
        assert descriptor.argv == ("[spawner: napper] -> /bin/sleep", "10")
        assert descriptor.env == {"HOME": "/home/tester", "LANG": "C", "BIN": "/home/tester/bin"}
        assert descriptor.stdout_path == "out.log"

    def test_overrides_replace_ambient_values(self) -> None:
        spec = ProcessSpec(path="/bin/true", env={"LANG": "en_US.UTF-8"})
        descriptor = build_launch_descriptor(spec, {"LANG": "C"})
        assert descriptor.env["LANG"] == "en_US.UTF-8"

    def test_expansion_failure_propagates(self) -> None:
        spec = ProcessSpec(path="/bin/true", env={"X": "$NOPE"})
        with pytest.raises(EnvExpansionError):
            build_launch_descriptor(spec, {})


# ── Exit Interpretation ───────────────────────────────────────────────

class TestInterpretReturncode:
    """Tests for the tagged outcome of a poll."""

    def test_none_is_running(self) -> None:
        result = interpret_returncode(None)
        assert result.state is ProcessState.RUNNING
        assert not result.exited

    def test_zero_is_clean_exit(self) -> None:
        result = interpret_returncode(0)
        assert result == PollResult(ProcessState.EXITED_OK, code=0)
        assert result.exited and not result.failed

    def test_positive_is_error_exit(self) -> None:
        result = interpret_returncode(3)
        assert result == PollResult(ProcessState.EXITED_ERROR, code=3)
        assert result.failed
        assert result.describe() == "exited with code: 3"

    def test_negative_is_signal(self) -> None:
        result = interpret_returncode(-signal.SIGKILL)
        assert result.state is ProcessState.KILLED
        assert result.signal == signal.SIGKILL
        assert result.failed
        assert "SIGKILL" in result.describe()


# ── Launching ─────────────────────────────────────────────────────────

class TestLaunchProcess:
    """Tests for the OS-level spawn errors."""

    def test_missing_executable(self, tmp_path) -> None:
        descriptor = LaunchDescriptor(
            executable=str(tmp_path / "no-such-binary"),
            argv=("no-such-binary",),
            env={},
        )
        with pytest.raises(SpawnError, match="not found"):
            launch_process(descriptor)

    def test_not_executable(self, tmp_path) -> None:
        script = tmp_path / "script.sh"
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o644)
        descriptor = LaunchDescriptor(executable=str(script), argv=(str(script),), env={})
        with pytest.raises(SpawnError):
            launch_process(descriptor)

    def test_output_file_cannot_be_created(self, tmp_path) -> None:
        descriptor = LaunchDescriptor(
            executable="/bin/true",
            argv=("/bin/true",),
            env={},
            stdout_path=str(tmp_path / "missing-dir" / "out.log"),
        )
        with pytest.raises(SpawnError, match="output file"):
            launch_process(descriptor)
