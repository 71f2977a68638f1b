import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import spawner.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    A singleton class that merges default settings with environment overrides.

    This class provides a unified, attribute-based access point for all
    application configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Values loaded from a `.env` file (handled by `python-dotenv` in settings.py).
    3. `SPAWNER_<KEY>` environment variables for settings in `MODIFIABLE_SETTINGS`.
    """

    ENV_PREFIX = "SPAWNER_"

    def __init__(self, environ: Optional[Dict[str, str]] = None) -> None:
        """
        Initializes the settings object by loading defaults and overrides.

        :param environ: The environment to read overrides from. Defaults to os.environ.
        """
        self._environ = os.environ if environ is None else environ
        self._load_defaults()
        self._load_env_overrides()

    def _load_defaults(self) -> None:
        """
        Loads all uppercase attributes from the settings.py module as defaults.
        """
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_env_overrides(self) -> None:
        """
        Applies `SPAWNER_<KEY>` environment variables on top of the defaults.

        Only keys listed in `MODIFIABLE_SETTINGS` are considered. A value that
        cannot be coerced to the type of its default is logged and ignored.
        """
        for key in sorted(self.MODIFIABLE_SETTINGS):
            raw_value = self._environ.get(f"{self.ENV_PREFIX}{key}")
            if raw_value is None:
                continue

            try:
                new_value = self._coerce(key, raw_value)
            except (ValueError, TypeError) as e:
                log.error(f"Could not convert value '{raw_value}' for setting '{key}'. Error: {e}")
                continue

            setattr(self, key, new_value)
            log.debug(f"Overridden setting from environment: {key} = {new_value}")

    def _coerce(self, key: str, value: str) -> Any:
        """
        Coerces a raw string to the type of the setting's default value.

        :param key: The setting name.
        :param value: The raw string value.
        :return: The converted value.
        """
        original_value = getattr(self, key, None)
        if isinstance(original_value, bool):
            return value.strip().lower() in ('true', '1', 't', 'yes', 'y')
        if isinstance(original_value, Path):
            return Path(value)
        if original_value is not None:
            return type(original_value)(value)
        return value or None  # Cannot determine type, accept as is

    def get(self, item: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return getattr(self, item, default)

    def get_all_settings(self) -> Dict[str, Any]:
        """Returns every uppercase setting as a dictionary."""
        return {key: value for key, value in vars(self).items() if key.isupper()}

# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
