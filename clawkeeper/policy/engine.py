"""
Sandbox policy for the gateway service and the one-shot jobs.

Ensures:
  - the gateway sees the whole filesystem read-only except its data
    directory and explicitly listed extra paths, with no capabilities, a
    syscall allow-list and IP/UNIX/netlink sockets only.
  - ROCm pass-through relaxes device isolation for the GPU nodes only.
  - each job gets the least access its RiskClass set calls for: READ-only
    jobs cannot write the data directory, jobs without NETWORK get a private
    network namespace.
Also provides redaction for anything written to the audit log.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List
import re

from clawkeeper.config.schema import DeployConfig


class RiskClass(str, Enum):
    READ = "READ"
    WRITE = "WRITE"
    NETWORK = "NETWORK"


REDACT_PATTERNS = [
    re.compile(r"(?i)(api[_-]?key\s*[:=]\s*)(['\"][^'\"]+['\"])"),
    re.compile(r"(?i)(authorization\s*[:=]\s*)(['\"][^'\"]+['\"])"),
    re.compile(r"(?i)sk-[A-Za-z0-9]{20,}"),
    re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b"),
    re.compile(r"(?i)((?:secret[_-]?access[_-]?key|access[_-]?key[_-]?id)\s*[:=]\s*)\S+"),
]


def redact_text(s: str) -> str:
    out = s
    for pat in REDACT_PATTERNS:
        out = pat.sub("[REDACTED]", out)
    return out


ROCM_DEVICES = [
    "/dev/kfd rw",
    "/dev/dri/card0 rw",
    "/dev/dri/renderD128 rw",
]


def _dedupe(paths: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for p in paths:
        if p not in seen:
            seen.append(p)
    return seen


class PolicyEngine:
    """
    Turns the sandbox configuration into supervisor directives.
    System-level hardening does not apply to per-user services, which the
    user manager cannot confine the same way.
    """

    def __init__(self, config: DeployConfig) -> None:
        self._cfg = config

    @property
    def enforced(self) -> bool:
        return self._cfg.sandbox.enable and not self._cfg.run_as_user_services

    def gateway_directives(self) -> Dict[str, Any]:
        if not self.enforced:
            return {}
        cfg = self._cfg
        rocm = cfg.rocm.enable

        out: Dict[str, Any] = {
            "ProtectSystem": "strict",
            "ProtectHome": True,
            "PrivateTmp": True,
            "ProtectKernelTunables": True,
            "ProtectKernelModules": True,
            "ProtectKernelLogs": True,
            "ProtectControlGroups": True,
            "ProtectClock": True,
            "ProtectHostname": True,
            "NoNewPrivileges": True,
            "LockPersonality": True,
            "RestrictRealtime": True,
            "RestrictSUIDSGID": True,
            "RemoveIPC": True,
            # The gateway's JIT needs writable+executable pages.
            "MemoryDenyWriteExecute": False,
            "CapabilityBoundingSet": "",
            "AmbientCapabilities": "",
            "PrivateUsers": not rocm,
            "PrivateDevices": not rocm,
            "RestrictAddressFamilies": ["AF_INET", "AF_INET6", "AF_UNIX", "AF_NETLINK"],
            "SystemCallFilter": ["@system-service", "~@mount", "~@reboot", "~@swap"],
            "SystemCallArchitectures": "native",
            "ReadWritePaths": _dedupe([cfg.data_dir, *cfg.sandbox.extra_write_paths]),
        }

        read_only = list(cfg.sandbox.extra_read_paths)
        if cfg.host_config_dir is not None:
            read_only.insert(0, cfg.host_config_dir)
        if read_only:
            out["ReadOnlyPaths"] = _dedupe(read_only)

        if rocm:
            out["DevicePolicy"] = "auto"
            out["DeviceAllow"] = list(ROCM_DEVICES)
        return out

    def job_directives(self, risks: FrozenSet[RiskClass]) -> Dict[str, Any]:
        if self._cfg.run_as_user_services:
            return {}
        out: Dict[str, Any] = {
            "ProtectSystem": "strict",
            "ProtectHome": True,
            "PrivateTmp": True,
            "PrivateDevices": True,
            "NoNewPrivileges": True,
        }
        if RiskClass.WRITE in risks:
            out["ReadWritePaths"] = [self._cfg.data_dir]
        else:
            out["ReadOnlyPaths"] = [self._cfg.data_dir]
        if RiskClass.NETWORK not in risks:
            out["PrivateNetwork"] = True
        return out
