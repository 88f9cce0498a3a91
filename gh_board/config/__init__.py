"""Configuration loading and field aliasing."""

from .settings import (
    CONFIG_FILE_NAME,
    CONFIG_FILE_NAME_JSON,
    Config,
    FieldAlias,
    ProjectConfig,
    find_config_file,
    load_config,
    load_config_from_directory,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "CONFIG_FILE_NAME_JSON",
    "Config",
    "FieldAlias",
    "ProjectConfig",
    "find_config_file",
    "load_config",
    "load_config_from_directory",
]
