import time
import signal
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Sequence

from spawner.local.supervisor.process_utils import ProcessState

if TYPE_CHECKING:
    from .handle import ProcessHandle

log = logging.getLogger(__name__)


#* --- Signal Handling ---
def install_signal_handlers(request_shutdown: Callable[[], None], signal_names: Iterable[str]) -> Dict[signal.Signals, Any]:
    """
    Installs handlers that call `request_shutdown` and nothing else.

    Handlers run on the main thread between bytecodes, so `request_shutdown`
    must not acquire any lock the main thread may already hold. A plain
    attribute assignment is enough; the supervision loop picks the request up
    at the top of its next cycle.

    :param request_shutdown: Sets the flag observed by the supervision loop.
    :param signal_names: Names of the signals to subscribe to (e.g. 'SIGTERM').
    :return: The previous handlers, keyed by signal, for restore_signal_handlers().
    """
    def handle_shutdown_signal(signum, frame):
        request_shutdown()

    previous = {}
    for name in signal_names:
        signum = getattr(signal, name, None)
        if signum is None:
            log.debug(f"Signal {name} is not available on this platform. Skipping.")
            continue
        previous[signum] = signal.signal(signum, handle_shutdown_signal)
    return previous


def restore_signal_handlers(previous: Dict[signal.Signals, Any]) -> None:
    """Puts back the handlers returned by install_signal_handlers()."""
    for signum, handler in previous.items():
        signal.signal(signum, handler if handler is not None else signal.SIG_DFL)


#* --- Termination ---
def _terminate_processes(handles: Sequence["ProcessHandle"]) -> List["ProcessHandle"]:
    """Sends SIGTERM to every live handle and returns the ones signalled."""
    signalled = []
    for handle in handles:
        with handle.lock:
            if handle.terminate():
                signalled.append(handle)
    return signalled


def _wait_for_exit(handles: Sequence["ProcessHandle"], timeout: float) -> List["ProcessHandle"]:
    """Waits for the handles to exit within a shared deadline and returns the survivors."""
    deadline = time.monotonic() + timeout
    alive = []
    for handle in handles:
        remaining = max(deadline - time.monotonic(), 0)
        if handle.wait(remaining).state is ProcessState.RUNNING:
            alive.append(handle)
    return alive


def _forceful_kill(handles: Sequence["ProcessHandle"]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    if not handles:
        return

    log.warning(f"{len(handles)} processes did not terminate gracefully. Forcing shutdown...")
    for handle in handles:
        if handle.kill():
            handle.wait(1)


def graceful_shutdown_sequence(handles: Sequence["ProcessHandle"], timeout: float) -> None:
    """
    Terminates every live handle: SIGTERM first, SIGKILL after `timeout` seconds.

    Every handle is left without a live process and reports its final outcome.

    :param handles: The handles to shut down, in manifest order.
    :param timeout: Seconds to wait for a graceful exit before force-killing.
    """
    signalled = _terminate_processes(handles)
    if signalled:
        log.info(f"Initiating graceful shutdown for {len(signalled)} processes...")

    survivors = _wait_for_exit(signalled, timeout)
    _forceful_kill(survivors)

    for handle in handles:
        with handle.lock:
            result = handle.poll()
            if result.exited:
                handle.log.info(f"{handle.spec.path} {result.describe()}")
            elif result.state is ProcessState.RUNNING:
                log.error(f"'{handle.display_name}' is still running after shutdown (PID {handle.pid}).")
