"""Configuration module for semindex.

Loads configuration from environment variables with sensible defaults.
Values can also come from two project-local files under the project root:

- ``.semindex/env.json``: service overrides (only ``OLLAMA_``, ``QDRANT_``,
  ``EMBEDDING_`` and ``INDEXER_`` keys are honored)
- ``.env``: plain ``KEY=VALUE`` lines

Precedence is process environment > env.json > .env.
"""

import hashlib
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_QDRANT_URL = "http://localhost:6333"
DEFAULT_EMBEDDING_URL = "http://localhost:11434"
DEFAULT_EMBEDDING_MODEL = "nomic-embed-text:latest"
DEFAULT_MAX_FILE_SIZE = 1024 * 1024  # 1 MiB
MAX_FILE_SIZE_LIMIT = 100 * 1024 * 1024

# Project-local directory holding settings.json, env.json, index-ignore, pii.yml
PROJECT_DIR = ".semindex"

ENV_JSON_PREFIXES = ("OLLAMA_", "QDRANT_", "EMBEDDING_", "INDEXER_")


def load_env_file(root: Path) -> dict[str, str]:
    """Parse ``<root>/.env`` into a dict. Missing or unreadable files yield {}."""
    env_path = root / ".env"
    if not env_path.is_file():
        return {}
    try:
        text = env_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", env_path, e)
        return {}

    env: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        if key:
            env[key] = value
    return env


def load_env_json(root: Path) -> dict[str, str]:
    """Parse ``<root>/.semindex/env.json``, keeping only allowlisted string keys."""
    json_path = root / PROJECT_DIR / "env.json"
    if not json_path.is_file():
        return {}
    try:
        data = json.loads(json_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Failed to parse %s, overrides not applied: %s", json_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Failed to parse %s, overrides not applied: not an object", json_path)
        return {}

    return {
        key: value
        for key, value in data.items()
        if key.startswith(ENV_JSON_PREFIXES) and isinstance(value, str) and value
    }


def load_settings(root: Path) -> dict[str, Any]:
    """Read ``<root>/.semindex/settings.json``. Invalid files are treated as empty."""
    settings_path = root / PROJECT_DIR / "settings.json"
    if not settings_path.is_file():
        return {}
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Failed to parse settings %s: %s", settings_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Failed to parse settings %s: not an object", settings_path)
        return {}
    return data


def default_project_id(root: Path) -> str:
    """Derive a stable project identifier from the resolved root path."""
    digest = hashlib.md5(str(root).encode("utf-8")).hexdigest()[:8]
    return f"{root.name or 'root'}-{digest}"


def _parse_int(env: dict[str, str], name: str, default: int, low: int, high: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
        if not low <= value <= high:
            raise ValueError(f"must be between {low} and {high}, got {value}")
    except ValueError as e:
        raise ValueError(f"Invalid {name} value '{raw}': {e}") from e
    return value


@dataclass
class Config:
    """Application configuration."""

    root: Path
    project_id: str
    qdrant_url: str = DEFAULT_QDRANT_URL
    qdrant_api_key: str | None = None
    embedding_url: str = DEFAULT_EMBEDDING_URL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    port: int = 8080
    indexing_enabled: bool = False

    @property
    def collection_name(self) -> str:
        """One vector collection per project, with non-alphanumerics normalized."""
        return "semindex_" + re.sub(r"[^a-zA-Z0-9]+", "_", self.project_id)

    @classmethod
    def from_env(cls, root: Path | None = None, load_project_env: bool = True) -> "Config":
        """Load configuration from environment variables and project files.

        Args:
            root: Project root. Defaults to SEMINDEX_ROOT, then the cwd.
            load_project_env: If False, .env and .semindex/env.json are not read.
        """
        if root is None:
            root = Path(os.getenv("SEMINDEX_ROOT", os.getcwd()))
        root = root.expanduser().resolve()

        env: dict[str, str] = {}
        if load_project_env:
            env.update(load_env_file(root))
            env.update(load_env_json(root))
        env.update(os.environ)

        max_file_size = _parse_int(
            env, "INDEXER_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE, 1, MAX_FILE_SIZE_LIMIT
        )
        port = _parse_int(env, "SEMINDEX_PORT", 8080, 1, 65535)

        settings = load_settings(root)
        indexing = settings.get("indexing")
        indexing_enabled = isinstance(indexing, dict) and indexing.get("enabled") is True

        return cls(
            root=root,
            project_id=env.get("SEMINDEX_PROJECT_ID") or default_project_id(root),
            qdrant_url=(env.get("QDRANT_URL") or DEFAULT_QDRANT_URL).rstrip("/"),
            qdrant_api_key=env.get("QDRANT_API_KEY") or None,
            embedding_url=(env.get("EMBEDDING_URL") or DEFAULT_EMBEDDING_URL).rstrip("/"),
            embedding_model=env.get("EMBEDDING_MODEL") or DEFAULT_EMBEDDING_MODEL,
            max_file_size=max_file_size,
            port=port,
            indexing_enabled=indexing_enabled,
        )


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
