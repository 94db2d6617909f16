"""
Job scheduler policy.

Declarative only: the host supervisor fires the jobs. Each job has its own
calendar cadence, a randomized start delay so many hosts sharing a schedule
do not hit the object store at once, and a persistence flag (a run missed
while the host was down is caught up at next boot). Overlap protection is
the supervisor's job too.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from clawkeeper.config.schema import DeployConfig
from clawkeeper.core.errors import ConfigError

HISTORY_COMMIT = "historyCommit"
BACKUP = "backup"


@dataclass(frozen=True)
class JobSchedule:
    cadence: str  # calendar expression, e.g. "*:0/5" or "hourly"
    jitter_seconds: int = 0
    persistent: bool = True

    def __post_init__(self) -> None:
        if not self.cadence.strip() or "\n" in self.cadence:
            raise ConfigError("cadence", f"invalid calendar expression {self.cadence!r}")
        if self.jitter_seconds < 0:
            raise ConfigError("jitter_seconds", f"must be >= 0, got {self.jitter_seconds}")


def schedules_for(config: DeployConfig) -> Dict[str, JobSchedule]:
    out: Dict[str, JobSchedule] = {}
    if config.history.enable:
        out[HISTORY_COMMIT] = JobSchedule(
            cadence=config.history.interval,
            jitter_seconds=config.tuning.history_random_delay,
        )
    if config.backup.enable:
        out[BACKUP] = JobSchedule(
            cadence=config.backup.interval,
            jitter_seconds=config.tuning.backup_random_delay,
        )
    return out


def timer_section(schedule: JobSchedule) -> Dict[str, str]:
    return {
        "OnCalendar": schedule.cadence,
        "Persistent": "true" if schedule.persistent else "false",
        "RandomizedDelaySec": str(schedule.jitter_seconds),
    }
