"""
Prepare a host for the gateway: create the data directory layout, render
the models document and establish the history root.

Usage: scripts/setup_runtime.py <path-to-deploy.yaml>
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from clawkeeper.config import load_config  # noqa: E402
from clawkeeper.core.errors import ConfigError, HistoryError  # noqa: E402
from clawkeeper.history import HistoryTracker  # noqa: E402
from clawkeeper.models import write_models_config  # noqa: E402
from clawkeeper.supervisor import ensure_layout  # noqa: E402


def main() -> int:
    if len(sys.argv) != 2:
        print("Usage: scripts/setup_runtime.py <path-to-deploy.yaml>")
        return 2
    try:
        cfg = load_config(Path(sys.argv[1]).expanduser())
    except ConfigError as e:
        print(f"config error: {e}")
        return 2

    for p in ensure_layout(cfg):
        print(f"created {p}")
    print(f"models: {write_models_config(cfg.registry, Path(cfg.resolved_models_config_path))}")
    if cfg.history.enable:
        try:
            created = HistoryTracker().ensure_repository(Path(cfg.data_dir))
        except HistoryError as e:
            print(f"history: {e}")
            return 1
        print("history: bootstrap commit created" if created else "history: already initialized")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
