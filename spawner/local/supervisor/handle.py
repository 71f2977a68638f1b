import psutil
import logging
import threading
from typing import Mapping, Optional

from spawner.log.setup import PROC_LOGGER_PREFIX
from spawner.local.errors import SpawnError
from spawner.local.manifest import ProcessSpec
from spawner.local.supervisor import process_utils
from spawner.local.supervisor.process_utils import PollResult, RUNNING, STOPPED

log = logging.getLogger(__name__)


class ProcessHandle:
    """
    Owns one supervised process: its spec, its launch descriptor and the
    live OS process, if any.

    The live process reference is only touched while holding `lock`, and it
    never leaves this class. `lock` is re-entrant so the supervisor can hold it
    across a whole poll/restart sequence while the individual methods still
    take it themselves.
    """

    def __init__(self, spec: ProcessSpec, environ: Optional[Mapping[str, str]] = None) -> None:
        """
        Builds the handle and its launch descriptor. Nothing is spawned yet.

        :param spec: The process spec from the manifest.
        :param environ: The ambient environment for variable expansion. Defaults to os.environ.
        :raises EnvExpansionError: If an environment override cannot be expanded.
        """
        self.spec = spec
        self.descriptor = process_utils.build_launch_descriptor(spec, environ)
        self.lock = threading.RLock()
        self.spawn_count = 0
        self._process: Optional[psutil.Popen] = None
        self.log = logging.getLogger(f"{PROC_LOGGER_PREFIX}{spec.display_name}")

    def __repr__(self) -> str:
        return f"<ProcessHandle {self.display_name!r} pid={self.pid}>"

    @property
    def display_name(self) -> str:
        return self.spec.display_name

    @property
    def pid(self) -> Optional[int]:
        """The PID of the live process, or None when there is none."""
        with self.lock:
            return self._process.pid if self._process is not None else None

    @property
    def is_running(self) -> bool:
        """True while a live process exists and has not exited yet."""
        with self.lock:
            return self._process is not None and self._process.poll() is None

    def spawn(self) -> int:
        """
        Launches the process from the launch descriptor.

        The first spawn truncates the stdout target; re-spawns append to it.

        :return: The PID of the new process.
        :raises SpawnError: If the handle already owns a running process or the launch fails.
        """
        with self.lock:
            if self._process is not None and self._process.poll() is None:
                raise SpawnError(f"'{self.display_name}' is already running as PID: {self._process.pid}")

            process = process_utils.launch_process(self.descriptor, append_output=self.spawn_count > 0)
            self._process = process
            self.spawn_count += 1
            self.log.info(f"starting {self.spec.path} with PID: {process.pid}")
            return process.pid

    def poll(self) -> PollResult:
        """
        Checks, without blocking, whether the live process has exited.

        On a detected exit the live reference is released, so the handle is
        left without a process until the next spawn.

        :return: The tagged outcome. STOPPED when there is no live process.
        """
        with self.lock:
            if self._process is None:
                return STOPPED
            result = process_utils.interpret_returncode(self._process.poll())
            if result.exited:
                self._process = None
            return result

    def wait(self, timeout: float) -> PollResult:
        """
        Waits up to `timeout` seconds for the live process to exit.

        Unlike poll(), this keeps the reference; the next poll() reports the
        exit and releases it.

        :param timeout: Maximum number of seconds to wait.
        :return: RUNNING if the process is still alive after the timeout.
        """
        with self.lock:
            if self._process is None:
                return STOPPED
            try:
                returncode = self._process.wait(timeout=timeout)
            except psutil.TimeoutExpired:
                return RUNNING
            return process_utils.interpret_returncode(returncode)

    def terminate(self) -> bool:
        """
        Sends SIGTERM to the live process.

        Calling this on a handle without a running process is a no-op.

        :return: True if a signal was sent, False otherwise.
        """
        with self.lock:
            if self._process is None or self._process.poll() is not None:
                return False
            try:
                self._process.terminate()
            except psutil.NoSuchProcess:
                return False
            self.log.debug(f"Sent SIGTERM to PID: {self._process.pid}")
            return True

    def kill(self) -> bool:
        """
        Sends SIGKILL to the live process. A no-op when it is already gone.

        :return: True if a signal was sent, False otherwise.
        """
        with self.lock:
            if self._process is None or self._process.poll() is not None:
                return False
            try:
                self._process.kill()
            except psutil.NoSuchProcess:
                return False
            self.log.warning(f"Killing stubborn process (PID {self._process.pid}).")
            return True

    def status_line(self) -> str:
        """Returns the one-line status report used by the supervision loop."""
        pid = self.pid
        if pid is not None and self.is_running:
            return f"{self.spec.path} running as PID: {pid}"
        return f"{self.spec.path} not running"
