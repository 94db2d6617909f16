"""Deployment configuration: typed model and YAML loader."""

from .schema import (
    BackupConfig,
    DeployConfig,
    ModelDefinition,
    ModelRegistry,
    RetentionPolicy,
    StorageCredentials,
)
from .loader import load_config, load_credentials, parse_config, read_environment_files

__all__ = [
    "BackupConfig",
    "DeployConfig",
    "ModelDefinition",
    "ModelRegistry",
    "RetentionPolicy",
    "StorageCredentials",
    "load_config",
    "load_credentials",
    "parse_config",
    "read_environment_files",
]
