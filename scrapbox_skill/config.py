"""
Configuration — loads settings from .scrapbox-skill.yaml, environment
variables, and built-in defaults (in that priority order: CLI args > env >
YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "project": "",
    "sid": "",
    "host": "https://scrapbox.io",
    "headless": True,
    "wait_ms": 1500,
    "settle_delay_ms": 100,
    "fuzz": 0,
    "request_timeout": 30.0,
    "log_dir": ".scrapbox-skill/logs",
    "metrics_file": ".scrapbox-skill/patch_metrics.jsonl",
}

# Config file search locations
_CONFIG_FILENAMES = [".scrapbox-skill.yaml", ".scrapbox-skill.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables (``SCRAPBOX_*``, then ``COSENSE_*``)
    3. .scrapbox-skill.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_keys: tuple[str, ...], yaml_key: str, default, cast=str):
            for env_key in env_keys:
                env_val = os.getenv(env_key)
                if env_val:
                    return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_keys: tuple[str, ...], yaml_key: str, default: bool) -> bool:
            for env_key in env_keys:
                env_val = os.getenv(env_key)
                if env_val:
                    return env_val.lower() not in ("false", "0", "no")
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        def _env(name: str) -> tuple[str, ...]:
            return (f"SCRAPBOX_{name}", f"COSENSE_{name}")

        self.PROJECT = _get(_env("PROJECT"), "project", _DEFAULTS["project"])
        self.SID = _get(_env("SID"), "sid", _DEFAULTS["sid"])
        self.HOST = _get(_env("HOST"), "host", _DEFAULTS["host"])
        self.HEADLESS = _get_bool(_env("HEADLESS"), "headless", _DEFAULTS["headless"])

        self.WAIT_MS = _get(_env("WAIT_MS"), "wait_ms", _DEFAULTS["wait_ms"], cast=int)
        self.SETTLE_DELAY_MS = _get(_env("SETTLE_DELAY_MS"), "settle_delay_ms",
                                    _DEFAULTS["settle_delay_ms"], cast=int)
        self.FUZZ = _get(_env("FUZZ"), "fuzz", _DEFAULTS["fuzz"], cast=int)
        self.REQUEST_TIMEOUT = _get(_env("REQUEST_TIMEOUT"), "request_timeout",
                                    _DEFAULTS["request_timeout"], cast=float)

        self.LOG_DIR = _get(_env("LOG_DIR"), "log_dir", _DEFAULTS["log_dir"])
        self.METRICS_FILE = _get(_env("METRICS_FILE"), "metrics_file",
                                 _DEFAULTS["metrics_file"])

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
