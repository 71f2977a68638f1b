import sys
import logging
import setproctitle
from pathlib import Path
from typing import List, Optional, Tuple

from spawner.log.setup import setup_logging
from spawner.local.config import effective_settings as config
from spawner.local.errors import ConfigurationError, SpawnError
from spawner.local.manifest import Manifest, load_manifest
from spawner.local.supervisor import Supervisor

log = logging.getLogger(__name__)


def print_help() -> None:
    """Prints the command line usage."""
    print("\nUsage: spawner [-c PATH] [--verbose]")
    print("  -c, --config PATH      - Manifest to load (.toml, .yaml or .yml).")
    print(f"                           Defaults to '{config.DEFAULT_MANIFEST_PATH}'.")
    print("  --verbose              - Show DEBUG log output in the console.")
    print("  -h, --help             - Show this help message.")
    print("\nSend SIGINT (Ctrl+C) or SIGTERM to stop every supervised process.")
    print()


def parse_args(argv: List[str]) -> Tuple[Optional[Path], bool, bool]:
    """
    Parses the command line.

    :param argv: The arguments without the program name.
    :return tuple: (manifest path or None, verbose flag, help requested).
    :raises ConfigurationError: On an unknown argument or a missing option value.
    """
    args = list(argv)
    manifest_path = None
    verbose = config.VERBOSE_LOGGING
    while args:
        arg = args.pop(0)
        if arg in ("-c", "--config"):
            if not args:
                raise ConfigurationError(f"Option '{arg}' requires a manifest path.")
            manifest_path = Path(args.pop(0))
        elif arg == "--verbose":
            verbose = True
        elif arg in ("-h", "--help"):
            return manifest_path, verbose, True
        else:
            raise ConfigurationError(f"Unknown argument: '{arg}'. Use '--help' for usage.")
    return manifest_path, verbose, False


def get_console_level(verbose: bool) -> int:
    """Returns the console log level from the verbose flag or the LOG_LEVEL setting."""
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(str(config.LOG_LEVEL).upper())
    return level if isinstance(level, int) else logging.INFO


def log_manifest(manifest: Manifest) -> None:
    """Logs a summary of every process in the manifest."""
    for spec in manifest.specs:
        log.info(
            f"Declared process '{spec.display_name}': {spec.path} {' '.join(spec.args)}".rstrip()
            + f" (restart: {spec.restart}, stdout: {spec.stdout or 'inherited'})"
        )


def main(argv: Optional[List[str]] = None) -> int:
    """
    The main entry point of the supervisor.

    :param argv: Command line arguments. Defaults to sys.argv[1:].
    :return int: The process exit status.
    """
    setproctitle.setproctitle(config.SUPERVISOR_PROC_TITLE)

    try:
        manifest_path, verbose, show_help = parse_args(sys.argv[1:] if argv is None else argv)
    except ConfigurationError as e:
        setup_logging(logging.INFO)
        log.error(str(e))
        return 2

    if show_help:
        print_help()
        return 0

    setup_logging(get_console_level(verbose))
    log.info("=" * 20 + " Spawner Starting " + "=" * 20)

    try:
        manifest = load_manifest(manifest_path or config.DEFAULT_MANIFEST_PATH)
        log_manifest(manifest)
        supervisor = Supervisor(manifest.specs, poll_interval_ms=manifest.poll_interval_ms)
        supervisor.run()
    except ConfigurationError as e:
        log.critical(f"Invalid configuration: {e}")
        return 1
    except SpawnError as e:
        log.critical(f"Supervisor aborted: {e}")
        return 1

    log.info("All supervised processes stopped. See you next time!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
