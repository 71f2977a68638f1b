"""
This module contains the default configuration settings for Spawner.
It defines the manifest location, supervisor timings and logging settings.
Values listed in MODIFIABLE_SETTINGS can be overridden with SPAWNER_<KEY>
environment variables (see spawner.local.config).
"""

import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Manifest ---
DEFAULT_MANIFEST_PATH = pathlib.Path(".spawner.toml")
MANIFEST_APPS_KEY = "app"
MANIFEST_SUFFIXES = {".toml", ".yaml", ".yml"}

#* --- Supervisor Settings ---
DEFAULT_POLL_INTERVAL_MS = 5000
GRACEFUL_SHUTDOWN_TIMEOUT = 10  # seconds before force-killing
SHUTDOWN_SIGNALS = ("SIGINT", "SIGTERM")

#* --- Process Titles ---
SUPERVISOR_PROC_TITLE = "Spawner - Supervisor"
PROCESS_TITLE_TEMPLATE = "[spawner: {name}] -> {path}"

#* --- Logging ---
LOG_LEVEL = "INFO"
LOG_FILE_PATH = None
VERBOSE_LOGGING = False

#* --- MODIFIABLE SETTINGS (overridable via SPAWNER_<KEY> environment variables) ---
MODIFIABLE_SETTINGS = {
    "DEFAULT_MANIFEST_PATH",
    "DEFAULT_POLL_INTERVAL_MS",
    "GRACEFUL_SHUTDOWN_TIMEOUT",
    "LOG_LEVEL",
    "LOG_FILE_PATH",
    "VERBOSE_LOGGING",
}
