"""Typed, immutable deployment configuration.

Values are built once by clawkeeper.config.loader and handed to every
component constructor; nothing reads configuration from ambient state.
"""


from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

BACKEND_TYPES: Tuple[str, ...] = (
    "anthropic",
    "openai-compatible",
    "ollama",
    "rocm",
    "remote",
)

STORAGE_PROVIDERS: Tuple[str, ...] = ("r2", "s3", "minio", "other")

COMPRESSIONS: Tuple[str, ...] = ("gz", "bz2", "xz")


@dataclass(frozen=True)
class ModelDefinition:
    """
    One model backend. Optional numbers stay None when absent; None is
    distinct from zero and is omitted from the rendered document.
    """
    key: str
    type: str  # one of BACKEND_TYPES
    model_name: str
    endpoint: str = ""  # empty = provider default
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    is_default: bool = False
    extra_config: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class ModelRegistry:
    models: Dict[str, ModelDefinition] = field(default_factory=dict)
    default_model_key: Optional[str] = None

    def sorted_keys(self) -> List[str]:
        return sorted(self.models)


@dataclass(frozen=True)
class RetentionPolicy:
    count: Optional[int] = 168  # None = unlimited


@dataclass(frozen=True)
class BackupConfig:
    enable: bool = False
    interval: str = "hourly"
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
    storage_provider: str = "r2"
    compression: str = "gz"


@dataclass(frozen=True)
class HistoryConfig:
    enable: bool = True
    interval: str = "*:0/5"


@dataclass(frozen=True)
class SandboxConfig:
    enable: bool = True
    extra_read_paths: List[str] = field(default_factory=list)
    extra_write_paths: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RocmConfig:
    enable: bool = False
    gfx_version: str = "11.0.0"
    device_ids: List[str] = field(default_factory=lambda: ["0"])


@dataclass(frozen=True)
class ClawhubConfig:
    # Skill registry integration: a cache under cache/ and a skills/ tree.
    enable: bool = False


@dataclass(frozen=True)
class RestartTuning:
    limit_burst: int = 5
    limit_interval: int = 300
    sec: int = 5


@dataclass(frozen=True)
class ResourceTuning:
    max_memory: str = "8G"
    max_files: int = 65536
    cpu_quota: str = "400%"


@dataclass(frozen=True)
class StatusTuning:
    log_lines: int = 25
    history_lines: int = 10


@dataclass(frozen=True)
class TuningConfig:
    restart: RestartTuning = field(default_factory=RestartTuning)
    resources: ResourceTuning = field(default_factory=ResourceTuning)
    history_random_delay: int = 30
    backup_random_delay: int = 300
    status: StatusTuning = field(default_factory=StatusTuning)


@dataclass(frozen=True)
class DeployConfig:
    data_dir: str = "/var/lib/openclaw"
    user: str = "openclaw"
    group: str = "openclaw"
    host: str = "127.0.0.1"
    port: int = 3000
    environment_files: List[str] = field(default_factory=list)
    extra_environment: Dict[str, str] = field(default_factory=dict)
    registry: ModelRegistry = field(default_factory=ModelRegistry)
    rocm: RocmConfig = field(default_factory=RocmConfig)
    clawhub: ClawhubConfig = field(default_factory=ClawhubConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    tuning: TuningConfig = field(default_factory=TuningConfig)
    # Read-only host configuration the application may inspect; enables a
    # proposals directory under data_dir.
    host_config_dir: Optional[str] = None
    run_as_user_services: bool = False
    gateway_command: str = "/usr/bin/openclaw-gateway"
    ctl_command: str = "/usr/bin/clawkeeper-ctl"
    config_path: str = "/etc/openclaw/deploy.yaml"
    models_config_path: str = ""  # default: <data_dir>/config/models.json

    @property
    def resolved_models_config_path(self) -> str:
        return self.models_config_path or f"{self.data_dir.rstrip('/')}/config/models.json"

    @property
    def proposals_dir(self) -> Optional[str]:
        if self.host_config_dir is None:
            return None
        return f"{self.data_dir.rstrip('/')}/host-proposals"

    @property
    def clawhub_cache_dir(self) -> Optional[str]:
        if not self.clawhub.enable:
            return None
        return f"{self.data_dir.rstrip('/')}/cache/clawhub"


@dataclass(frozen=True)
class StorageCredentials:
    bucket: str
    access_key_id: str
    secret_access_key: str
    endpoint: str
