import logging
import tomllib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml

from spawner.local.config import effective_settings as config
from spawner.local.errors import ConfigurationError

log = logging.getLogger(__name__)

_SPEC_KEYS = {"name", "path", "args", "env", "restart", "stdout"}


@dataclass(frozen=True)
class ProcessSpec:
    """Declarative description of one supervised process."""

    path: str
    name: Optional[str] = None
    args: Tuple[str, ...] = ()
    env: Dict[str, str] = field(default_factory=dict)
    restart: bool = True
    stdout: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.path


@dataclass(frozen=True)
class Manifest:
    """The ordered list of process specs and the optional poll interval (seconds)."""

    specs: Tuple[ProcessSpec, ...]
    interval: Optional[int] = None

    @property
    def poll_interval_ms(self) -> Optional[int]:
        return None if self.interval is None else self.interval * 1000


#* --- Parsing ---
def _read_document(path: Path) -> Dict[str, Any]:
    """
    Reads and parses a TOML or YAML manifest file.

    :param path: The manifest path. The format is chosen from its suffix.
    :return: The parsed top-level mapping.
    :raises ConfigurationError: If the file cannot be read or parsed.
    """
    suffix = path.suffix.lower()
    if suffix not in config.MANIFEST_SUFFIXES:
        raise ConfigurationError(
            f"Unsupported manifest format '{suffix or path.name}'. "
            f"Expected one of: {', '.join(sorted(config.MANIFEST_SUFFIXES))}"
        )

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Could not read manifest '{path}': {e}") from e

    try:
        if suffix == ".toml":
            document = tomllib.loads(text)
        else:
            document = yaml.safe_load(text)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Manifest '{path}' is malformed: {e}") from e

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Manifest '{path}' must contain a mapping at the top level.")
    return document


def _require_type(value: Any, expected: type, label: str) -> Any:
    if not isinstance(value, expected):
        raise ConfigurationError(f"{label} must be of type {expected.__name__}, got {type(value).__name__}.")
    return value


def parse_spec(entry: Any, index: int) -> ProcessSpec:
    """
    Builds a ProcessSpec from one raw manifest entry.

    :param entry: The raw mapping from the manifest.
    :param index: The position of the entry, used in error messages.
    :return: The validated ProcessSpec.
    :raises ConfigurationError: If a field is missing or has the wrong type.
    """
    label = f"{config.MANIFEST_APPS_KEY}[{index}]"
    _require_type(entry, dict, label)

    unknown = set(entry) - _SPEC_KEYS
    if unknown:
        log.warning(f"Ignoring unknown keys in {label}: {', '.join(sorted(unknown))}")

    path = entry.get("path")
    if not isinstance(path, str) or not path:
        raise ConfigurationError(f"{label}.path is required and must be a non-empty string.")

    name = entry.get("name")
    if name is not None:
        _require_type(name, str, f"{label}.name")

    args = entry.get("args") or []
    _require_type(args, list, f"{label}.args")
    for arg in args:
        _require_type(arg, str, f"{label}.args item")

    env = entry.get("env") or {}
    _require_type(env, dict, f"{label}.env")
    for key, value in env.items():
        _require_type(key, str, f"{label}.env key")
        _require_type(value, str, f"{label}.env['{key}']")

    restart = entry.get("restart", True)
    _require_type(restart, bool, f"{label}.restart")

    stdout = entry.get("stdout")
    if stdout is not None:
        _require_type(stdout, str, f"{label}.stdout")

    return ProcessSpec(path=path, name=name, args=tuple(args), env=dict(env), restart=restart, stdout=stdout)


def parse_manifest(document: Dict[str, Any]) -> Manifest:
    """
    Validates a parsed manifest document and converts it into a Manifest.

    :param document: The top-level mapping of the manifest.
    :return: The Manifest with specs in declaration order.
    :raises ConfigurationError: If the document is invalid.
    """
    interval = document.get("interval")
    if interval is not None:
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            raise ConfigurationError(f"interval must be a positive whole number of seconds, got {interval!r}.")

    entries: List[Any] = document.get(config.MANIFEST_APPS_KEY) or []
    _require_type(entries, list, config.MANIFEST_APPS_KEY)

    specs = tuple(parse_spec(entry, index) for index, entry in enumerate(entries))
    return Manifest(specs=specs, interval=interval)


def load_manifest(path: Path) -> Manifest:
    """
    Loads the manifest listing the processes to supervise.

    :param path: Path to a `.toml`, `.yaml` or `.yml` manifest.
    :return: The validated Manifest.
    :raises ConfigurationError: If the manifest is unreadable, malformed or invalid.
    """
    path = Path(path)
    manifest = parse_manifest(_read_document(path))
    log.info(f"Loaded manifest '{path}' with {len(manifest.specs)} process(es).")
    if not manifest.specs:
        log.warning(f"Manifest '{path}' does not declare any processes.")
    return manifest
