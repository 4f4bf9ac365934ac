"""JSON config store that keeps tool sections next to the project."""
import json
import logging
import os
from typing import Any, Optional

from alb_deploy.errors import ConfigError

logger = logging.getLogger(__name__)

SHARED_CONFIG_FILE = "config.json"


class ConfigStore:
    """Reads and writes top-level keys of ``<key>.json`` or ``config.json``.

    A dedicated ``<key>.json`` wins over the shared ``config.json``; new keys
    go to ``<key>.json`` unless a shared file already exists.
    """

    def _read(self, path: str) -> dict:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Could not parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        return data

    def path_for(self, key: str, directory: str) -> str:
        """File that holds (or would hold) ``key``."""
        dedicated = os.path.join(directory, f"{key}.json")
        shared = os.path.join(directory, SHARED_CONFIG_FILE)
        if os.path.exists(dedicated):
            return dedicated
        if os.path.exists(shared):
            return shared
        return dedicated

    def get(self, key: str, directory: str) -> Optional[Any]:
        path = self.path_for(key, directory)
        if not os.path.exists(path):
            return None
        return self._read(path).get(key)

    def set(self, key: str, value: Any, directory: str) -> None:
        path = self.path_for(key, directory)
        data = self._read(path) if os.path.exists(path) else {}
        data[key] = value

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        logger.info(f"Saved '{key}' config to {path}")
