"""
Compile a DeployConfig into the units the host supervisor runs: the
long-running gateway service plus a one-shot service and timer per
scheduled job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import logging
import shlex

from clawkeeper.config.schema import DeployConfig
from clawkeeper.policy.engine import PolicyEngine
from clawkeeper.schedule.policy import BACKUP, HISTORY_COMMIT, JobSchedule, schedules_for, timer_section
from clawkeeper.supervisor.builtins import backup_spec, history_commit_spec
from clawkeeper.supervisor.jobs import JobSpec

logger = logging.getLogger(__name__)

GATEWAY_UNIT = "openclaw-gateway.service"
HISTORY_UNIT = "openclaw-history"
BACKUP_UNIT = "openclaw-backup"
SYSLOG_IDENTIFIER = "openclaw"


@dataclass(frozen=True)
class Unit:
    name: str
    sections: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def gateway_environment(config: DeployConfig) -> Dict[str, str]:
    env = {
        "NODE_ENV": "production",
        "OPENCLAW_STATE_DIR": config.data_dir,
        "OPENCLAW_GATEWAY_HOST": config.host,
        "OPENCLAW_GATEWAY_PORT": str(config.port),
        "OPENCLAW_MODELS_CONFIG": config.resolved_models_config_path,
        "HOME": config.data_dir,
    }
    if config.rocm.enable:
        env["HSA_OVERRIDE_GFX_VERSION"] = config.rocm.gfx_version
        env["HIP_VISIBLE_DEVICES"] = ",".join(config.rocm.device_ids)
    if config.host_config_dir is not None:
        env["OPENCLAW_HOST_CONFIG_DIR"] = config.host_config_dir
        env["OPENCLAW_HOST_PROPOSALS_DIR"] = config.proposals_dir or ""
    if config.clawhub_cache_dir is not None:
        env["CLAWHUB_CACHE_DIR"] = config.clawhub_cache_dir
    env.update(config.extra_environment)
    return env


def _ctl(config: DeployConfig, *args: str) -> str:
    return shlex.join([config.ctl_command, "--config", config.config_path, *args])


def _identity(config: DeployConfig) -> Dict[str, Any]:
    if config.run_as_user_services:
        return {}
    return {"User": config.user, "Group": config.group}


def gateway_unit(config: DeployConfig, policy: PolicyEngine) -> Unit:
    t = config.tuning
    service: Dict[str, Any] = {
        "Type": "simple",
        **_identity(config),
        # Models document is regenerated on every start, never reloaded live.
        "ExecStartPre": _ctl(config, "render"),
        "ExecStart": config.gateway_command,
        "Restart": "always",
        "RestartSec": t.restart.sec,
        "WorkingDirectory": config.data_dir,
        "EnvironmentFile": list(config.environment_files),
        "Environment": gateway_environment(config),
        "LimitNOFILE": t.resources.max_files,
        "MemoryMax": t.resources.max_memory,
        "CPUQuota": t.resources.cpu_quota,
        "StandardOutput": "journal",
        "StandardError": "journal",
        "SyslogIdentifier": SYSLOG_IDENTIFIER,
    }
    service.update(policy.gateway_directives())
    return Unit(
        name=GATEWAY_UNIT,
        sections={
            "Unit": {
                "Description": "OpenClaw AI Gateway",
                "After": "network-online.target",
                "Wants": "network-online.target",
                "StartLimitBurst": t.restart.limit_burst,
                "StartLimitIntervalSec": t.restart.limit_interval,
            },
            "Service": service,
            "Install": {"WantedBy": "default.target" if config.run_as_user_services else "multi-user.target"},
        },
    )


def job_units(config: DeployConfig, policy: PolicyEngine, base: str, spec: JobSpec, schedule: JobSchedule, command: str) -> List[Unit]:
    unit_section: Dict[str, Any] = {"Description": spec.description}
    if spec.name == backup_spec.name:
        unit_section["After"] = "network-online.target"
        unit_section["Wants"] = "network-online.target"

    service: Dict[str, Any] = {
        "Type": "oneshot",
        **_identity(config),
        "ExecStart": _ctl(config, command),
        "EnvironmentFile": list(config.environment_files),
    }
    service.update(policy.job_directives(spec.risks))

    return [
        Unit(name=f"{base}.service", sections={"Unit": unit_section, "Service": service}),
        Unit(
            name=f"{base}.timer",
            sections={
                "Unit": {"Description": spec.description},
                "Timer": timer_section(schedule),
                "Install": {"WantedBy": "timers.target"},
            },
        ),
    ]


def compile_units(config: DeployConfig) -> List[Unit]:
    policy = PolicyEngine(config)
    schedules = schedules_for(config)
    units = [gateway_unit(config, policy)]
    if HISTORY_COMMIT in schedules:
        units += job_units(config, policy, HISTORY_UNIT, history_commit_spec, schedules[HISTORY_COMMIT], "track")
    if BACKUP in schedules:
        units += job_units(config, policy, BACKUP_UNIT, backup_spec, schedules[BACKUP], "backup")
    return units


def _format_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)


def render_unit(unit: Unit) -> str:
    """
    INI text for one unit. List values become repeated directives (several
    deny/allow filter lines must not be merged); Environment mappings become
    one quoted Environment= line per variable.
    """
    out: List[str] = []
    for section, directives in unit.sections.items():
        if out:
            out.append("")
        out.append(f"[{section}]")
        for key, value in directives.items():
            if isinstance(value, dict):
                for k in sorted(value):
                    escaped = str(value[k]).replace("\\", "\\\\").replace('"', '\\"')
                    out.append(f'{key}="{k}={escaped}"')
            elif isinstance(value, list):
                for item in value:
                    out.append(f"{key}={_format_value(item)}")
            else:
                out.append(f"{key}={_format_value(value)}")
    return "\n".join(out) + "\n"


def write_units(units: List[Unit], out_dir: Path) -> List[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for unit in units:
        p = out_dir / unit.name
        p.write_text(render_unit(unit), encoding="utf-8")
        written.append(p)
    logger.info("wrote %d unit(s) to %s", len(written), out_dir)
    return written
