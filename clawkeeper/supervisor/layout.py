"""
File-system layout under the data directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple
import os

from clawkeeper.config.schema import DeployConfig

SUBDIRS = ["data", "config", "logs", "cache", "staging"]


def layout_directories(config: DeployConfig) -> List[Tuple[Path, int]]:
    root = Path(config.data_dir)
    dirs = [(root, 0o750)]
    dirs += [(root / name, 0o750) for name in SUBDIRS]
    dirs.append((root / "secrets", 0o700))
    if config.proposals_dir is not None:
        dirs.append((Path(config.proposals_dir), 0o750))
    if config.clawhub_cache_dir is not None:
        dirs.append((Path(config.clawhub_cache_dir), 0o750))
        dirs.append((root / "skills", 0o750))
    return dirs


def tmpfiles_rules(config: DeployConfig) -> List[str]:
    return [f"d {p} {mode:04o} {config.user} {config.group} -" for p, mode in layout_directories(config)]


def ensure_layout(config: DeployConfig) -> List[Path]:
    """
    Create missing directories with their modes. Ownership is left to the
    caller (tmpfiles or a privileged installer).
    """
    created: List[Path] = []
    for p, mode in layout_directories(config):
        if not p.exists():
            p.mkdir(parents=True)
            created.append(p)
        os.chmod(p, mode)
    return created
