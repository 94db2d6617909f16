"""Timer schedules for periodic jobs."""

from .policy import BACKUP, HISTORY_COMMIT, JobSchedule, schedules_for, timer_section

__all__ = ["BACKUP", "HISTORY_COMMIT", "JobSchedule", "schedules_for", "timer_section"]
