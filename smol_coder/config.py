"""
Configuration — loads settings from .smol.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "repo_root": ".",
    "data_dir": ".smol",
    "max_file_bytes": 256 * 1024,
    "diff_context": 3,
    "undo_depth": 10,
    "allow_hidden_paths": False,
    "record_metrics": False,
    "log_dir": ".smol/logs",
}

# Config file search locations
_CONFIG_FILENAMES = [".smol.yaml", ".smol.yml"]


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
    """Edit engine configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .smol.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                try:
                    return cast(env_val)
                except ValueError:
                    return default
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                try:
                    return cast(yaml_val)
                except (TypeError, ValueError):
                    return default
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() in ("1", "true", "yes")
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        self.REPO_ROOT = _get("SMOL_REPO_ROOT", "repo_root",
                              _DEFAULTS["repo_root"])
        self.DATA_DIR = _get("SMOL_DATA_DIR", "data_dir",
                             _DEFAULTS["data_dir"])

        # Size ceiling for a mutated file, in bytes
        self.MAX_FILE_BYTES = _get("SMOL_MAX_FILE_BYTES", "max_file_bytes",
                                   _DEFAULTS["max_file_bytes"], cast=int)
        self.DIFF_CONTEXT = _get("SMOL_DIFF_CONTEXT", "diff_context",
                                 _DEFAULTS["diff_context"], cast=int)
        self.UNDO_DEPTH = _get("SMOL_UNDO_DEPTH", "undo_depth",
                               _DEFAULTS["undo_depth"], cast=int)

        self.ALLOW_HIDDEN_PATHS = _get_bool("SMOL_ALLOW_HIDDEN_PATHS",
                                            "allow_hidden_paths",
                                            _DEFAULTS["allow_hidden_paths"])
        self.RECORD_METRICS = _get_bool("SMOL_RECORD_METRICS",
                                        "record_metrics",
                                        _DEFAULTS["record_metrics"])

        self.LOG_DIR = _get("SMOL_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])

    def _under_root(self, path: str, repo_root: str | None = None) -> str:
        # Absolute settings win over the root in os.path.join
        return os.path.abspath(os.path.join(repo_root or self.REPO_ROOT, path))

    def backup_root(self, repo_root: str | None = None) -> str:
        """Directory holding one sub-directory per committed batch."""
        return os.path.join(self._under_root(self.DATA_DIR, repo_root), "backups")

    def metrics_path(self, repo_root: str | None = None) -> str:
        return os.path.join(self._under_root(self.DATA_DIR, repo_root),
                            "edit_metrics.jsonl")

    def log_dir(self, repo_root: str | None = None) -> str:
        return self._under_root(self.LOG_DIR, repo_root)

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
