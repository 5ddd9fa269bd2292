"""
Configuration: loads settings from .route-registry.yaml, environment
variables, and built-in defaults (in that priority order: CLI args > env >
YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "app_dir": os.path.join("src", "app"),
    "registry_dir": "registry",
    "entry_files": ["page.tsx", "page.ts", "page.jsx", "page.js"],
    "path_aliases": {"@/": "src/"},
    "embedding_provider": "hashing",
    "embedding_dimensions": 256,
    "embedding_model": "text-embedding-3-small",
    "openai_api_key": "",
    "openai_base_url": "https://api.openai.com/v1",
    "scan_workers": 4,
    "top_k": 5,
    "log_level": "WARNING",
}

_ENV_PREFIX = "ROUTE_REGISTRY_"

# Config file search locations
_CONFIG_FILENAMES = [".route-registry.yaml", ".route-registry.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

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


def _split_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    """Route registry configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables (``ROUTE_REGISTRY_<KEY>``)
    3. .route-registry.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(key: str, cast=str):
            env_val = os.getenv(_ENV_PREFIX + key.upper())
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(key)
            if yaml_val is not None:
                return cast(yaml_val)
            return _DEFAULTS[key]

        self.APP_DIR = _get("app_dir")
        self.REGISTRY_DIR = _get("registry_dir")

        env_entries = os.getenv(_ENV_PREFIX + "ENTRY_FILES")
        if env_entries is not None:
            self.ENTRY_FILES = _split_list(env_entries)
        elif isinstance(yd.get("entry_files"), list):
            self.ENTRY_FILES = [str(e) for e in yd["entry_files"]]
        else:
            self.ENTRY_FILES = list(_DEFAULTS["entry_files"])

        aliases = yd.get("path_aliases")
        if isinstance(aliases, dict):
            self.PATH_ALIASES = {str(k): str(v) for k, v in aliases.items()}
        else:
            self.PATH_ALIASES = dict(_DEFAULTS["path_aliases"])

        self.EMBEDDING_PROVIDER = _get("embedding_provider").lower()
        self.EMBEDDING_DIMENSIONS = _get("embedding_dimensions", cast=int)
        self.EMBEDDING_MODEL = _get("embedding_model")

        # OpenAI section (only used by the "openai" provider)
        openai_section = yd.get("openai", {}) if isinstance(yd.get("openai"), dict) else {}
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or openai_section.get(
            "api_key", _DEFAULTS["openai_api_key"])
        self.OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or openai_section.get(
            "base_url", _DEFAULTS["openai_base_url"])

        self.SCAN_WORKERS = max(1, _get("scan_workers", cast=int))
        self.TOP_K = _get("top_k", cast=int)
        self.LOG_LEVEL = _get("log_level").upper()

    def resolve_aliases(self, project_root: str) -> dict[str, str]:
        """Return path aliases with targets made absolute against *project_root*."""
        return {
            prefix: os.path.join(os.path.abspath(project_root), target)
            for prefix, target in self.PATH_ALIASES.items()
        }

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
