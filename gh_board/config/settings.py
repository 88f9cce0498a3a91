"""Project configuration loaded from ``.gh-board.yml``.

The configuration file is discovered by walking up from the working
directory. YAML is preferred; a ``.gh-board.json`` companion is used when no
YAML file exists anywhere up the tree.

Example::

    project:
      owner: my-org
      number: 7
    repositories:
      - my-org/api
    framework: IDPF
    fields:
      status:
        field: Status
        values:
          backlog: Backlog
          in_progress: In Progress
          done: Done
"""

import json
import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".gh-board.yml"
CONFIG_FILE_NAME_JSON = ".gh-board.json"

PROJECT_OWNER_ENV = "GH_BOARD_PROJECT_OWNER"
PROJECT_NUMBER_ENV = "GH_BOARD_PROJECT_NUMBER"

WORKFLOW_FRAMEWORK_PREFIX = "IDPF"


class ProjectConfig(BaseModel):
    """The GitHub project (board) that issues are tracked on."""

    owner: str = Field("", description="User or organization login owning the board")
    number: int = Field(0, description="Project number as shown in the board URL")
    name: str | None = Field(None, description="Optional display name")


class FieldAlias(BaseModel):
    """Maps a field key to its board field name and value aliases."""

    field: str = Field("", description="Field name on the project board")
    values: dict[str, str] = Field(
        default_factory=dict, description="Alias -> actual option value"
    )


class Config(BaseModel):
    """Validated gh-board configuration."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    repositories: list[str] = Field(
        default_factory=list, description="owner/repo entries; the first is default"
    )
    framework: str = Field(
        WORKFLOW_FRAMEWORK_PREFIX,
        description="Workflow framework; IDPF* enables transition rules",
    )
    fields: dict[str, FieldAlias] = Field(default_factory=dict)

    def validate_required(self) -> None:
        """Check that required configuration values are present.

        Raises:
            ConfigError: If the project owner, number or repositories are missing
        """
        if not self.project.owner:
            raise ConfigError("project.owner is required")
        if self.project.number <= 0:
            raise ConfigError("project.number is required")
        if not self.repositories:
            raise ConfigError("at least one repository is required")

    def is_workflow_enabled(self) -> bool:
        """Return True when workflow transition rules apply to this project."""
        framework = self.framework.strip() or WORKFLOW_FRAMEWORK_PREFIX
        return framework.upper().startswith(WORKFLOW_FRAMEWORK_PREFIX)

    def default_repository(self) -> tuple[str, str] | None:
        """Return the (owner, repo) used for bare issue numbers, if configured."""
        if not self.repositories:
            return None
        parts = self.repositories[0].split("/")
        if len(parts) != 2 or not all(parts):
            return None
        return parts[0], parts[1]

    def get_field_name(self, field_key: str, default: str | None = None) -> str:
        """Return the board field name for a field key."""
        alias = self.fields.get(field_key)
        if alias and alias.field:
            return alias.field
        return default if default is not None else field_key

    def resolve_field_value(self, field_key: str, value: str) -> str:
        """Map an alias to the actual board option value.

        Unknown aliases and unconfigured fields pass through unchanged.
        """
        alias = self.fields.get(field_key)
        if alias is None:
            return value

        if value in alias.values:
            return alias.values[value]

        lowered = value.lower()
        for key, actual in alias.values.items():
            if key.lower() == lowered:
                return actual
        return value

    def validate_field_value(self, field_key: str, value: str) -> None:
        """Check that a value is a known alias for the field.

        Fields without configured aliases accept any value.

        Raises:
            ConfigError: If aliases are configured and the value matches none
        """
        alias = self.fields.get(field_key)
        if alias is None or not alias.values:
            return

        lowered = value.lower()
        if any(key.lower() == lowered for key in alias.values):
            return

        available = ", ".join(sorted(alias.values))
        raise ConfigError(
            f"invalid {field_key} value {value!r}\nAvailable values: {available}"
        )

    def apply_env_overrides(self) -> None:
        """Apply GH_BOARD_PROJECT_OWNER / GH_BOARD_PROJECT_NUMBER overrides."""
        owner = os.getenv(PROJECT_OWNER_ENV)
        if owner:
            self.project.owner = owner

        number = os.getenv(PROJECT_NUMBER_ENV)
        if number:
            try:
                self.project.number = int(number)
            except ValueError:
                logger.warning(
                    "Ignoring %s=%r: not an integer", PROJECT_NUMBER_ENV, number
                )


def find_config_file(start_dir: Path) -> Path:
    """Find the nearest config file at or above ``start_dir``.

    Raises:
        ConfigError: If neither a YAML nor a JSON config file is found
    """
    start = start_dir.resolve()
    for file_name in (CONFIG_FILE_NAME, CONFIG_FILE_NAME_JSON):
        for directory in (start, *start.parents):
            candidate = directory / file_name
            if candidate.is_file():
                return candidate

    raise ConfigError(
        f"no {CONFIG_FILE_NAME} found in {start_dir} or any parent directory"
    )


def load_config(path: Path) -> Config:
    """Read and validate a configuration file.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {path}: {e}") from e

    logger.debug("Loaded configuration from %s", path)
    return config


def load_config_from_directory(directory: Path) -> Config:
    """Discover and load the config file for ``directory``."""
    return load_config(find_config_file(directory))
