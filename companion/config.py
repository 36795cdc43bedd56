"""
Hierarchical ``.knowledgerrc`` configuration for the companion process.

Sources, lowest priority first: built-in defaults, ``~/.knowledgerrc``, then
every ``.knowledgerrc`` from the filesystem root down to the working
directory. Later sources override earlier ones key by key.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

logger = logging.getLogger("knowledger.companion")

CONFIG_FILENAME = ".knowledgerrc"
DEFAULT_API_ENDPOINT = "http://localhost:8000/api"


def default_config() -> dict[str, Any]:
    return {"api_endpoint": DEFAULT_API_ENDPOINT, "default_tags": []}


class ConfigManager:
    def __init__(self, cwd: Optional[Path] = None, home: Optional[Path] = None):
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.home = Path(home) if home is not None else Path.home()
        self.loaded_paths: list[Path] = []
        self._config: Optional[dict[str, Any]] = None

    def _candidate_paths(self) -> list[Path]:
        paths = [self.home / CONFIG_FILENAME]
        directories = list(reversed([self.cwd, *self.cwd.parents]))
        for directory in directories:
            candidate = directory / CONFIG_FILENAME
            if candidate not in paths:
                paths.append(candidate)
        return paths

    def _load_file(self, path: Path) -> Optional[dict]:
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("config_load_failed", extra={"path": str(path), "detail": str(exc)})
            return None
        if not isinstance(data, dict):
            logger.warning("config_not_object", extra={"path": str(path)})
            return None
        return data

    def load(self) -> dict[str, Any]:
        merged = default_config()
        self.loaded_paths = []
        for path in self._candidate_paths():
            data = self._load_file(path)
            if data is None:
                continue
            merged.update(data)
            self.loaded_paths.append(path)
            logger.debug("config_loaded", extra={"path": str(path)})
        self._config = merged
        return merged

    def get(self) -> dict[str, Any]:
        if self._config is None:
            self.load()
        return dict(self._config)

    @property
    def api_endpoint(self) -> str:
        return self.get().get("api_endpoint") or DEFAULT_API_ENDPOINT

    @property
    def default_tags(self) -> list[str]:
        tags = self.get().get("default_tags")
        return list(tags) if isinstance(tags, list) else []

    @property
    def user_token(self) -> Optional[str]:
        return self.get().get("user_token")

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        config = self.get()
        errors = []
        endpoint = config.get("api_endpoint")
        if not endpoint:
            errors.append("api_endpoint is required")
        else:
            parsed = urlparse(str(endpoint))
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append("api_endpoint must be a valid URL")
        if not isinstance(config.get("default_tags", []), list):
            errors.append("default_tags must be an array")
        return errors

    def current_project(self) -> Optional[str]:
        config = self.get()
        project = config.get("project_name") or config.get("default_project")
        if project:
            return project
        return self.cwd.name or None

    def create_sample(self) -> Path:
        path = self.cwd / CONFIG_FILENAME
        if path.exists():
            raise FileExistsError(f"{CONFIG_FILENAME} already exists in current directory")
        sample = {
            "api_endpoint": DEFAULT_API_ENDPOINT,
            "default_tags": ["project", "notes"],
            "project_name": self.current_project() or "my-project",
        }
        path.write_text(json.dumps(sample, indent=2) + "\n", encoding="utf-8")
        logger.info("config_created", extra={"path": str(path)})
        return path
