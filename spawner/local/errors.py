"""Exceptions raised by the manifest loader and the supervisor."""


class SpawnerError(RuntimeError):
    """Base class for all fatal Spawner errors."""


class ConfigurationError(SpawnerError):
    """The manifest is unreadable, malformed or describes an invalid process."""


class EnvExpansionError(ConfigurationError):
    """An environment override references a variable that cannot be resolved."""


class SpawnError(SpawnerError):
    """The operating system refused to launch a supervised process."""
