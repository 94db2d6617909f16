"""Config Loader
Reads the deployment YAML into a validated DeployConfig, and storage
credentials from the environment.
"""


from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging
import os

import yaml  # requires pyyaml

from clawkeeper.core.errors import ConfigError
from clawkeeper.config.schema import (
    BACKEND_TYPES,
    COMPRESSIONS,
    STORAGE_PROVIDERS,
    BackupConfig,
    ClawhubConfig,
    DeployConfig,
    HistoryConfig,
    ModelDefinition,
    ModelRegistry,
    ResourceTuning,
    RestartTuning,
    RetentionPolicy,
    RocmConfig,
    SandboxConfig,
    StatusTuning,
    StorageCredentials,
    TuningConfig,
)

logger = logging.getLogger(__name__)

CREDENTIAL_VARS = {
    "bucket": "OPENCLAW_S3_BUCKET",
    "access_key_id": "OPENCLAW_S3_ACCESS_KEY_ID",
    "secret_access_key": "OPENCLAW_S3_SECRET_ACCESS_KEY",
    "endpoint": "OPENCLAW_S3_ENDPOINT",
}

_MISSING = object()


def _norm_key(v: Any) -> str:
    """
    YAML turns bare `null`, `true` or numbers used as mapping keys into
    non-strings. Model keys are always strings.
    """
    if v is None:
        return "null"
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)


def _section(data: Mapping[str, Any], name: str, path: str) -> Dict[str, Any]:
    raw = data.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}{name}", "must be a mapping")
    return raw


def _get(data: Mapping[str, Any], name: str, default: Any) -> Any:
    v = data.get(name, _MISSING)
    return default if v is _MISSING else v


def _bool(data: Mapping[str, Any], name: str, default: bool, path: str) -> bool:
    v = _get(data, name, default)
    if not isinstance(v, bool):
        raise ConfigError(path + name, f"expected true/false, got {v!r}")
    return v


def _int(data: Mapping[str, Any], name: str, default: int, path: str, *, minimum: Optional[int] = None) -> int:
    v = _get(data, name, default)
    if isinstance(v, bool) or not isinstance(v, int):
        raise ConfigError(path + name, f"expected an integer, got {v!r}")
    if minimum is not None and v < minimum:
        raise ConfigError(path + name, f"must be >= {minimum}, got {v}")
    return v


def _str(data: Mapping[str, Any], name: str, default: str, path: str, *, allow_empty: bool = True) -> str:
    v = _get(data, name, default)
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        v = str(v)
    if not isinstance(v, str):
        raise ConfigError(path + name, f"expected a string, got {v!r}")
    if not allow_empty and not v.strip():
        raise ConfigError(path + name, "must not be empty")
    return v


def _opt_str(data: Mapping[str, Any], name: str, path: str) -> Optional[str]:
    if data.get(name) is None:
        return None
    return _str(data, name, "", path, allow_empty=False)


def _choice(data: Mapping[str, Any], name: str, default: str, choices: Iterable[str], path: str) -> str:
    v = _str(data, name, default, path)
    choices = tuple(choices)
    if v not in choices:
        raise ConfigError(path + name, f"unknown value {v!r}; expected one of {', '.join(choices)}")
    return v


def _str_list(data: Mapping[str, Any], name: str, path: str, default: Optional[List[str]] = None) -> List[str]:
    v = _get(data, name, None)
    if v is None:
        return list(default or [])
    if not isinstance(v, list) or not all(isinstance(x, (str, int)) and not isinstance(x, bool) for x in v):
        raise ConfigError(path + name, "expected a list of strings")
    return [str(x) for x in v]


def _str_map(v: Any, field: str) -> Dict[str, str]:
    if not isinstance(v, dict):
        raise ConfigError(field, "expected a mapping of string to string")
    out: Dict[str, str] = {}
    for k, val in v.items():
        if not isinstance(val, str):
            raise ConfigError(f"{field}.{_norm_key(k)}", f"expected a string value, got {val!r}")
        out[_norm_key(k)] = val
    return out


def _parse_model(key: str, cfg: Any) -> ModelDefinition:
    path = f"models.{key}."
    if not isinstance(cfg, dict):
        raise ConfigError(f"models.{key}", "must be a mapping")

    backend = cfg.get("type")
    if backend not in BACKEND_TYPES:
        raise ConfigError(path + "type", f"unknown backend type {backend!r}; expected one of {', '.join(BACKEND_TYPES)}")

    max_tokens = cfg.get("maxTokens")
    if max_tokens is not None:
        if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0:
            raise ConfigError(path + "maxTokens", f"expected a positive integer, got {max_tokens!r}")

    temperature = cfg.get("temperature")
    if temperature is not None:
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            raise ConfigError(path + "temperature", f"expected a number, got {temperature!r}")
        temperature = float(temperature)

    extra = cfg.get("extraConfig")
    if extra is not None:
        extra = _str_map(extra, path + "extraConfig")

    return ModelDefinition(
        key=key,
        type=backend,
        model_name=_str(cfg, "modelName", "", path, allow_empty=False),
        endpoint=_str(cfg, "endpoint", "", path) if cfg.get("endpoint") is not None else "",
        max_tokens=max_tokens,
        temperature=temperature,
        is_default=_bool(cfg, "isDefault", False, path),
        extra_config=extra,
    )


def parse_registry(models_raw: Any, default_model: Any) -> ModelRegistry:
    if models_raw is None:
        models_raw = {}
    if not isinstance(models_raw, dict):
        raise ConfigError("models", "must be a mapping of key to model definition")

    models: Dict[str, ModelDefinition] = {}
    for raw_key, cfg in models_raw.items():
        key = _norm_key(raw_key)
        models[key] = _parse_model(key, cfg)

    default_key = None
    if default_model is not None:
        default_key = _norm_key(default_model)
        if default_key not in models:
            known = ", ".join(sorted(models)) or "(none)"
            raise ConfigError("default_model", f"{default_key!r} is not a defined model key; known keys: {known}")

    return ModelRegistry(models=models, default_model_key=default_key)


def _parse_retention(backup: Mapping[str, Any]) -> RetentionPolicy:
    if "retention_count" in backup and backup["retention_count"] is None:
        return RetentionPolicy(count=None)
    return RetentionPolicy(count=_int(backup, "retention_count", 168, "backup.", minimum=0))


def _calendar(data: Mapping[str, Any], name: str, default: str, path: str) -> str:
    v = _str(data, name, default, path, allow_empty=False)
    if "\n" in v or "\r" in v:
        raise ConfigError(path + name, "calendar expression must be a single line")
    return v.strip()


def parse_config(data: Mapping[str, Any], *, config_path: str = "/etc/openclaw/deploy.yaml") -> DeployConfig:
    """
    Validate a raw mapping (as loaded from YAML) into a DeployConfig.
    Raises ConfigError naming the offending field.
    """
    if not isinstance(data, dict):
        raise ConfigError("(root)", "configuration must be a mapping")

    rocm = _section(data, "rocm", "")
    clawhub = _section(data, "clawhub", "")
    history = _section(data, "history", "")
    backup = _section(data, "backup", "")
    sandbox = _section(data, "sandbox", "")
    tuning = _section(data, "tuning", "")
    restart = _section(tuning, "restart", "tuning.")
    resources = _section(tuning, "resources", "tuning.")
    status = _section(tuning, "status", "tuning.")

    extra_env = data.get("extra_environment")
    port = _int(data, "port", 3000, "")
    if not 1 <= port <= 65535:
        raise ConfigError("port", f"must be between 1 and 65535, got {port}")

    return DeployConfig(
        data_dir=_str(data, "data_dir", "/var/lib/openclaw", "", allow_empty=False).rstrip("/") or "/",
        user=_str(data, "user", "openclaw", "", allow_empty=False),
        group=_str(data, "group", "openclaw", "", allow_empty=False),
        host=_str(data, "host", "127.0.0.1", "", allow_empty=False),
        port=port,
        environment_files=_str_list(data, "environment_files", ""),
        extra_environment=_str_map(extra_env, "extra_environment") if extra_env is not None else {},
        registry=parse_registry(data.get("models"), data.get("default_model")),
        rocm=RocmConfig(
            enable=_bool(rocm, "enable", False, "rocm."),
            gfx_version=_str(rocm, "gfx_version", "11.0.0", "rocm.", allow_empty=False),
            device_ids=_str_list(rocm, "device_ids", "rocm.", default=["0"]),
        ),
        clawhub=ClawhubConfig(enable=_bool(clawhub, "enable", False, "clawhub.")),
        history=HistoryConfig(
            enable=_bool(history, "enable", True, "history."),
            interval=_calendar(history, "interval", "*:0/5", "history."),
        ),
        backup=BackupConfig(
            enable=_bool(backup, "enable", False, "backup."),
            interval=_calendar(backup, "interval", "hourly", "backup."),
            retention=_parse_retention(backup),
            storage_provider=_choice(backup, "storage_provider", "r2", STORAGE_PROVIDERS, "backup."),
            compression=_choice(backup, "compression", "gz", COMPRESSIONS, "backup."),
        ),
        sandbox=SandboxConfig(
            enable=_bool(sandbox, "enable", True, "sandbox."),
            extra_read_paths=_str_list(sandbox, "extra_read_paths", "sandbox."),
            extra_write_paths=_str_list(sandbox, "extra_write_paths", "sandbox."),
        ),
        tuning=TuningConfig(
            restart=RestartTuning(
                limit_burst=_int(restart, "limit_burst", 5, "tuning.restart.", minimum=1),
                limit_interval=_int(restart, "limit_interval", 300, "tuning.restart.", minimum=0),
                sec=_int(restart, "sec", 5, "tuning.restart.", minimum=0),
            ),
            resources=ResourceTuning(
                max_memory=_str(resources, "max_memory", "8G", "tuning.resources.", allow_empty=False),
                max_files=_int(resources, "max_files", 65536, "tuning.resources.", minimum=1),
                cpu_quota=_str(resources, "cpu_quota", "400%", "tuning.resources.", allow_empty=False),
            ),
            history_random_delay=_int(tuning, "history_random_delay", 30, "tuning.", minimum=0),
            backup_random_delay=_int(tuning, "backup_random_delay", 300, "tuning.", minimum=0),
            status=StatusTuning(
                log_lines=_int(status, "log_lines", 25, "tuning.status.", minimum=1),
                history_lines=_int(status, "history_lines", 10, "tuning.status.", minimum=1),
            ),
        ),
        host_config_dir=_opt_str(data, "host_config_dir", ""),
        run_as_user_services=_bool(data, "run_as_user_services", False, ""),
        gateway_command=_str(data, "gateway_command", "/usr/bin/openclaw-gateway", "", allow_empty=False),
        ctl_command=_str(data, "ctl_command", "/usr/bin/clawkeeper-ctl", "", allow_empty=False),
        config_path=config_path,
        models_config_path=_str(data, "models_config_path", "", ""),
    )


def load_config(path: Path) -> DeployConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError("(file)", f"cannot read {path}: {e.strerror or e}") from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError("(file)", f"invalid YAML in {path}: {e}") from e
    cfg = parse_config(data, config_path=str(path))
    logger.debug("loaded config from %s (%d models)", path, len(cfg.registry.models))
    return cfg


def _unquote(v: str) -> str:
    if len(v) >= 2 and v[0] == v[-1] and v[0] in {"'", '"'}:
        return v[1:-1]
    return v


def read_environment_files(paths: Iterable[str]) -> Dict[str, str]:
    """
    Parse KEY=VALUE environment files in order; later files win.
    Missing files are skipped (they are optional secrets drop-ins).
    """
    env: Dict[str, str] = {}
    for p in paths:
        fp = Path(p)
        if not fp.is_file():
            logger.debug("environment file not found, skipping: %s", fp)
            continue
        for line in fp.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            name, sep, value = line.partition("=")
            if not sep or not name.strip():
                continue
            env[name.strip()] = _unquote(value.strip())
    return env


def load_credentials(environ: Mapping[str, str], environment_files: Iterable[str] = ()) -> StorageCredentials:
    """
    Storage credentials from environment files overlaid by the process
    environment. Raises ConfigError naming the first missing variable.
    """
    merged: Dict[str, str] = dict(read_environment_files(environment_files))
    merged.update({k: v for k, v in environ.items() if k in CREDENTIAL_VARS.values()})

    values: Dict[str, str] = {}
    for field_name, var in CREDENTIAL_VARS.items():
        v = (merged.get(var) or "").strip()
        if not v:
            raise ConfigError(var, "must be set (environment or environment_files)")
        values[field_name] = v
    return StorageCredentials(**values)
