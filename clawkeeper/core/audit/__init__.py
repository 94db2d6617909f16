"""Hash-chained JSONL audit log."""

from .writer import AuditWriter, verify_audit_log
from .replay import replay_audit_log, ReplayResult

__all__ = ['AuditWriter', 'verify_audit_log', 'replay_audit_log', 'ReplayResult']