import os
import re
import enum
import signal
import psutil
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from spawner.local.config import effective_settings as config
from spawner.local.errors import EnvExpansionError, SpawnError
from spawner.local.manifest import ProcessSpec

log = logging.getLogger(__name__)


#* --- Process Outcomes ---
class ProcessState(enum.Enum):
    RUNNING = "running"
    EXITED_OK = "exited_ok"
    EXITED_ERROR = "exited_error"
    KILLED = "killed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PollResult:
    """Tagged outcome of a liveness check."""

    state: ProcessState
    code: Optional[int] = None
    signal: Optional[int] = None

    @property
    def exited(self) -> bool:
        return self.state in (ProcessState.EXITED_OK, ProcessState.EXITED_ERROR, ProcessState.KILLED)

    @property
    def failed(self) -> bool:
        return self.state in (ProcessState.EXITED_ERROR, ProcessState.KILLED)

    def describe(self) -> str:
        """Returns a human-readable description of the outcome."""
        if self.state is ProcessState.EXITED_OK:
            return "exited without error"
        if self.state is ProcessState.EXITED_ERROR:
            return f"exited with code: {self.code}"
        if self.state is ProcessState.KILLED:
            return f"killed by signal: {signal_name(self.signal)}"
        return self.state.value.replace("_", " ")


RUNNING = PollResult(ProcessState.RUNNING)
STOPPED = PollResult(ProcessState.STOPPED)


def signal_name(signum: Optional[int]) -> str:
    """Returns 'SIGTERM (15)' style names, or 'unknown'."""
    if signum is None:
        return "unknown"
    try:
        return f"{signal.Signals(signum).name} ({signum})"
    except ValueError:
        return str(signum)


def interpret_returncode(returncode: Optional[int]) -> PollResult:
    """
    Converts a Popen return code into a tagged PollResult.

    Negative return codes follow the POSIX convention used by subprocess:
    the process was terminated by the negated signal number.

    :param returncode: The value from Popen.poll() or Popen.wait().
    :return: The matching PollResult.
    """
    if returncode is None:
        return RUNNING
    if returncode == 0:
        return PollResult(ProcessState.EXITED_OK, code=0)
    if returncode < 0:
        return PollResult(ProcessState.KILLED, signal=-int(returncode))
    return PollResult(ProcessState.EXITED_ERROR, code=int(returncode))


#* --- Launch Descriptor ---
@dataclass(frozen=True)
class LaunchDescriptor:
    """Everything needed to spawn an identical process again."""

    executable: str
    argv: Tuple[str, ...]
    env: Dict[str, str]
    stdout_path: Optional[str] = None


ENV_REFERENCE = re.compile(r"\$(?:\{([A-Za-z_]\w*)\}|([A-Za-z_]\w*))")


def expand_env(overrides: Mapping[str, str], environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Resolves shell-style `$VAR` and `${VAR}` references in environment override values.

    Any other `$` is kept as a literal, as a shell would.

    :param overrides: The raw overrides from the process spec.
    :param environ: The ambient environment to resolve against. Defaults to os.environ.
    :return: A new dictionary with every value expanded.
    :raises EnvExpansionError: If a referenced variable is unset.
    """
    environ = os.environ if environ is None else environ
    expanded = {}
    for key, value in overrides.items():
        def resolve(match: "re.Match[str]") -> str:
            name = match.group(1) or match.group(2)
            if name not in environ:
                raise EnvExpansionError(
                    f"Environment value for '{key}' references unset variable '{name}': {value!r}"
                )
            return environ[name]

        expanded[key] = ENV_REFERENCE.sub(resolve, value)
    return expanded


def get_process_title(spec: ProcessSpec) -> str:
    """Returns the argv[0] shown for the supervised process."""
    if spec.name:
        return config.PROCESS_TITLE_TEMPLATE.format(name=spec.name, path=spec.path)
    return spec.path


def build_launch_descriptor(spec: ProcessSpec, environ: Optional[Mapping[str, str]] = None) -> LaunchDescriptor:
    """
    Builds the launch descriptor for a process spec.

    The child inherits the ambient environment, overlaid with the expanded
    overrides from the spec.

    :param spec: The process spec.
    :param environ: The ambient environment. Defaults to os.environ.
    :return: The LaunchDescriptor reused for every (re-)spawn.
    :raises EnvExpansionError: If an override cannot be expanded.
    """
    environ = os.environ if environ is None else environ
    env = dict(environ)
    env.update(expand_env(spec.env, environ))
    return LaunchDescriptor(
        executable=spec.path,
        argv=(get_process_title(spec), *spec.args),
        env=env,
        stdout_path=spec.stdout,
    )


#* --- Process Creation ---
def _open_output_file(path: str, append: bool):
    try:
        return open(path, "ab" if append else "wb")
    except OSError as e:
        raise SpawnError(f"Could not open output file '{path}': {e}") from e


def launch_process(descriptor: LaunchDescriptor, append_output: bool = False) -> psutil.Popen:
    """
    Launches a process from its descriptor.

    :param descriptor: The launch descriptor.
    :param append_output: Append to the stdout target instead of truncating it.
    :return: The psutil.Popen wrapping the new child.
    :raises SpawnError: If the executable or the output file cannot be used.
    """
    stdout_file = None
    if descriptor.stdout_path:
        stdout_file = _open_output_file(descriptor.stdout_path, append_output)

    try:
        return psutil.Popen(
            list(descriptor.argv),
            executable=descriptor.executable,
            env=descriptor.env,
            stdout=stdout_file,
        )
    except FileNotFoundError as e:
        raise SpawnError(f"Executable '{descriptor.executable}' not found: {e}") from e
    except PermissionError as e:
        raise SpawnError(f"Permission denied launching '{descriptor.executable}': {e}") from e
    except OSError as e:
        raise SpawnError(f"Failed to launch '{descriptor.executable}': {e}") from e
    finally:
        # The child holds its own copy of the descriptor.
        if stdout_file:
            stdout_file.close()
