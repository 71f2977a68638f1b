import time
import logging
from typing import List, Mapping, Optional, Sequence

from spawner.local.config import effective_settings as config
from spawner.local.errors import SpawnError
from spawner.local.manifest import ProcessSpec
from spawner.local.supervisor import shutdown
from spawner.local.supervisor.handle import ProcessHandle
from spawner.local.supervisor.process_utils import PollResult

log = logging.getLogger(__name__)


def needs_restart(result: PollResult, spec: ProcessSpec) -> bool:
    """A failed or killed process is restarted only when its spec allows it."""
    return result.failed and spec.restart


class Supervisor:
    """
    Spawns the processes of a manifest and keeps them alive.

    Every cycle the supervisor waits for the poll interval, polls each handle
    in manifest order and restarts the ones that failed. A SIGINT/SIGTERM only
    sets the plain `shutdown_requested` flag; the loop notices it at the top of
    the next cycle and terminates every live process.
    """

    def __init__(
        self,
        specs: Sequence[ProcessSpec],
        poll_interval_ms: Optional[int] = None,
        shutdown_timeout: Optional[float] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Builds one handle per spec. Nothing is spawned yet.

        :param specs: The process specs, in manifest order.
        :param poll_interval_ms: Milliseconds between cycles. Defaults to DEFAULT_POLL_INTERVAL_MS.
        :param shutdown_timeout: Seconds to wait before force-killing at shutdown.
        :param environ: The ambient environment for variable expansion. Defaults to os.environ.
        :raises EnvExpansionError: If any spec's environment cannot be expanded.
        """
        self.handles: List[ProcessHandle] = [ProcessHandle(spec, environ) for spec in specs]
        self.poll_interval_ms = poll_interval_ms if poll_interval_ms is not None else config.DEFAULT_POLL_INTERVAL_MS
        self.shutdown_timeout = shutdown_timeout if shutdown_timeout is not None else config.GRACEFUL_SHUTDOWN_TIMEOUT
        self.shutdown_requested = False
        self.cycle_count = 0

    @property
    def poll_interval(self) -> float:
        """The poll interval in seconds."""
        return self.poll_interval_ms / 1000

    def request_shutdown(self) -> None:
        """Asks the supervision loop to stop at the next cycle boundary. Safe to call from a signal handler."""
        self.shutdown_requested = True

    def start_all(self) -> None:
        """
        Spawns every process in manifest order.

        A single failing spec aborts the whole startup: the processes spawned
        so far are terminated and the error is re-raised.

        :raises SpawnError: If any process cannot be launched.
        """
        log.info(f"Starting {len(self.handles)} processes...")
        start_time = time.time()
        for handle in self.handles:
            try:
                handle.spawn()
            except SpawnError as e:
                log.critical(f"Failed to start process '{handle.display_name}': {e}")
                self.stop_all()
                raise
        log.info(f"Spawned {len(self.handles)} processes in {time.time() - start_time:.2f} seconds.")

    def stop_all(self) -> None:
        """Terminates every live process, force-killing the ones that do not exit in time."""
        shutdown.graceful_shutdown_sequence(self.handles, self.shutdown_timeout)

    def _restart(self, handle: ProcessHandle) -> None:
        log.warning(f"Process '{handle.display_name}' is down. Restarting...")
        pid = handle.spawn()
        log.info(f"Process '{handle.display_name}' restarted as PID: {pid}")

    def supervise(self, handle: ProcessHandle) -> PollResult:
        """
        Runs the poll/restart/report sequence for one handle under its lock.

        :param handle: The handle to check.
        :return: The outcome observed by the poll.
        :raises SpawnError: If a restart fails.
        """
        with handle.lock:
            result = handle.poll()
            if result.exited:
                handle.log.warning(f"{handle.spec.path} {result.describe()}")
                if needs_restart(result, handle.spec):
                    self._restart(handle)
            handle.log.info(handle.status_line())
            return result

    def run_cycle(self) -> List[PollResult]:
        """
        Polls every handle once, in manifest order.

        :return: The outcomes observed, in manifest order.
        :raises SpawnError: If a restart fails.
        """
        self.cycle_count += 1
        log.debug(f"Starting poll cycle #{self.cycle_count}")
        return [self.supervise(handle) for handle in self.handles]

    def supervision_loop(self) -> None:
        """
        Main supervisor loop that monitors and restarts the processes.

        Returns after an orderly shutdown. A failed restart shuts every other
        process down too, then propagates.

        :raises SpawnError: If a restart fails.
        """
        while True:
            if self.shutdown_requested:
                log.info("Shutdown requested. Terminating all processes...")
                self.stop_all()
                return

            time.sleep(self.poll_interval)

            try:
                self.run_cycle()
            except SpawnError as e:
                log.critical(f"PANIC: Restart failed ({e}). Initiating full shutdown.")
                self.stop_all()
                raise

    def run(self) -> None:
        """
        Subscribes to the shutdown signals, spawns everything and supervises
        until shutdown.

        :raises SpawnError: If the startup or a restart fails.
        """
        previous_handlers = shutdown.install_signal_handlers(self.request_shutdown, config.SHUTDOWN_SIGNALS)
        try:
            self.start_all()
            log.info(f"Supervisor started. Polling every {self.poll_interval_ms} ms.")
            self.supervision_loop()
            log.info("Supervisor stopped.")
        finally:
            shutdown.restore_signal_handlers(previous_handlers)
