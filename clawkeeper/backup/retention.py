"""Retention math for remote archives."""


from __future__ import annotations

from typing import Iterable, List

from clawkeeper.config.schema import RetentionPolicy
from clawkeeper.backup.archive import archive_timestamp


def select_expired(names: Iterable[str], retention: RetentionPolicy) -> List[str]:
    """
    Names to delete, oldest first: everything except the `count` most recent
    by the timestamp embedded in the name. Unlimited retention (count None)
    deletes nothing. Objects that do not follow the archive naming convention
    are never candidates.
    """
    if retention.count is None:
        return []
    stamped = []
    for n in names:
        ts = archive_timestamp(n)
        if ts is not None:
            stamped.append((ts, n))
    archives = [n for _, n in sorted(stamped)]
    excess = len(archives) - retention.count
    if excess <= 0:
        return []
    return archives[:excess]
