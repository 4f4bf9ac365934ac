"""Project manifest (name and version) of the service being deployed."""
import json
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from alb_deploy.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectManifest:
    name: str
    version: str
    main: Optional[str] = None

    @classmethod
    def load(cls, project_dir: str) -> 'ProjectManifest':
        """Read the manifest from pyproject.toml, falling back to package.json."""
        root = Path(project_dir)
        pyproject = root / "pyproject.toml"
        package_json = root / "package.json"

        if pyproject.exists():
            try:
                with open(pyproject, "rb") as f:
                    data = tomllib.load(f).get("project", {})
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Could not parse {pyproject}: {e}") from e
            source = pyproject
        elif package_json.exists():
            try:
                with open(package_json, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Could not parse {package_json}: {e}") from e
            source = package_json
        else:
            raise ConfigError(f"No pyproject.toml or package.json found in {project_dir}")

        if not data.get("name") or not data.get("version"):
            raise ConfigError(f"{source} must declare a name and a version")

        logger.debug(f"Loaded project manifest from {source}")
        return cls(name=str(data["name"]), version=str(data["version"]), main=data.get("main"))
