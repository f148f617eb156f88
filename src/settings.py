"""Static configuration for noteping.

All user-editable settings (database, gateway, sweep, logging) live in a
single JSON file for quick edits without touching Python. Secrets such as the
gateway token come from the environment instead, see client.py.
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits in the project root unless NOTEPING_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("NOTEPING_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite notes database.
_database = _CONFIG.get("database", {})
DB_PATH = _resolve_path(_database.get("path", "noteping.db"))

# Messaging gateway endpoint. The token is read from FONNTE_TOKEN.
# - GATEWAY_TIMEOUT_SECONDS bounds every send so a hung gateway fails the
#   candidate instead of stalling the sweep.
_gateway = _CONFIG.get("gateway", {})
GATEWAY_URL = _gateway.get("base_url", "https://api.fonnte.com/send")
COUNTRY_CODE = str(_gateway.get("country_code", "62"))
GATEWAY_TIMEOUT_SECONDS = float(_gateway.get("timeout_seconds", 10))

# Sweep controls.
# - WINDOW_HOURS: default look-ahead of the scheduled sweep
# - MAX_CONCURRENCY: parallel dispatches per sweep (1 keeps it sequential)
_sweep = _CONFIG.get("sweep", {})
WINDOW_HOURS = int(_sweep.get("window_hours", 24))
MAX_CONCURRENCY = int(_sweep.get("max_concurrency", 1))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
