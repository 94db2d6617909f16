"""Host supervisor: job registry, service units and on-disk layout."""

from .jobs import JobContext, JobRegistry, JobSpec
from .builtins import BACKUP_JOB, HISTORY_COMMIT_JOB, RESTORE_JOB, build_registry
from .units import Unit, compile_units, render_unit, write_units
from .layout import ensure_layout, layout_directories, tmpfiles_rules

__all__ = [
    "BACKUP_JOB",
    "HISTORY_COMMIT_JOB",
    "RESTORE_JOB",
    "JobContext",
    "JobRegistry",
    "JobSpec",
    "Unit",
    "build_registry",
    "compile_units",
    "ensure_layout",
    "layout_directories",
    "render_unit",
    "tmpfiles_rules",
    "write_units",
]
