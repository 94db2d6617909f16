"""
Registry and invocation for the one-shot jobs (history commit, backup,
restore). This is the job boundary: every helper failure below it surfaces
here as one failed JobResult, and this is where it gets logged and audited.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional
import logging
import traceback
import uuid

from clawkeeper.config.schema import DeployConfig
from clawkeeper.core.audit import AuditWriter
from clawkeeper.core.types import JobResult
from clawkeeper.history.tracker import HistoryTracker
from clawkeeper.policy.engine import RiskClass
from clawkeeper.storage.base import ObjectStore

logger = logging.getLogger(__name__)

JobHandler = Callable[[Dict[str, Any], "JobContext"], Dict[str, Any]]


@dataclass(frozen=True)
class JobSpec:
    name: str
    risks: FrozenSet[RiskClass]
    handler: JobHandler
    description: str = ""


@dataclass(frozen=True)
class JobContext:
    config: DeployConfig
    data_dir: Path
    tracker: HistoryTracker
    # Called lazily so jobs that never touch the store need no credentials.
    store_factory: Callable[[], ObjectStore]
    tmp_dir: Optional[Path] = None


class JobRegistry:
    """
    Single choke point for job execution. Every invocation records
    JobStarted and exactly one of JobCompleted / JobFailed.
    """

    def __init__(self, *, audit: AuditWriter, context: JobContext) -> None:
        self._audit = audit
        self._ctx = context
        self._jobs: Dict[str, JobSpec] = {}

    @property
    def context(self) -> JobContext:
        return self._ctx

    def register(self, spec: JobSpec) -> None:
        if spec.name in self._jobs:
            raise ValueError(f"Job already registered: {spec.name}")
        self._jobs[spec.name] = spec

    def get_spec(self, name: str) -> Optional[JobSpec]:
        return self._jobs.get(name)

    def names(self) -> List[str]:
        return sorted(self._jobs)

    def invoke(self, *, job_name: str, args: Optional[Dict[str, Any]] = None, run_id: Optional[str] = None) -> JobResult:
        args = args or {}
        run_id = run_id or uuid.uuid4().hex
        spec = self._jobs.get(job_name)

        self._audit.append(run_id, "JobStarted", {"job_name": job_name, "args": args})

        if spec is None:
            res = JobResult(run_id=run_id, job_name=job_name, ok=False, error="unknown job")
            self._audit.append(run_id, "JobFailed", {"job_name": job_name, "error": res.error})
            logger.error("job %s: unknown job", job_name)
            return res

        try:
            out = spec.handler(args, self._ctx)
            res = JobResult(run_id=run_id, job_name=job_name, ok=True, result=out)
        except Exception as e:
            res = JobResult(
                run_id=run_id,
                job_name=job_name,
                ok=False,
                result={"error_type": e.__class__.__name__, "traceback": traceback.format_exc(limit=3)},
                error=f"{e.__class__.__name__}: {e}",
            )

        if res.ok:
            self._audit.append(run_id, "JobCompleted", {"job_name": job_name, "result": res.result})
            logger.info("job %s completed (run %s)", job_name, run_id)
        else:
            self._audit.append(
                run_id,
                "JobFailed",
                {"job_name": job_name, "error": res.error, "error_type": res.result.get("error_type")},
            )
            logger.error("job %s failed (run %s): %s", job_name, run_id, res.error)
        return res
