"""
Job Types - client-side view of DeployR managed jobs.

Jobs are owned by the server. The client rebuilds them from the
``job/list`` response on every command and never caches them, so the
``id`` of a Job is only its position in that one listing.

Usage:
    from deployr_cli.jobs.types import Job, StatusCategory

    jobs = [Job.from_dict(i, raw) for i, raw in enumerate(response["jobs"])]
    done = [j for j in jobs if j.category is StatusCategory.COMPLETED]
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class JobStatus(str, Enum):
    """Status values the DeployR server reports for a job."""
    SCHEDULED = "Scheduled"
    QUEUED = "Queued"
    RUNNING = "Running"
    COMPLETED = "Completed"
    CANCELLING = "Cancelling"
    CANCELLED = "Cancelled"
    INTERRUPTED = "Interrupted"
    ABORTED = "Aborted"
    FAILED = "Failed"


class StatusCategory(str, Enum):
    """
    Grouping of statuses used by ``job list`` filters.

    - OPEN → Scheduled, Queued, Running
    - COMPLETED → Completed
    - CANCELLED → Cancelled, Cancelling
    - INCOMPLETE → Interrupted, Aborted, Failed
    """
    OPEN = "open"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INCOMPLETE = "incomplete"

    @property
    def statuses(self) -> FrozenSet[JobStatus]:
        return _CATEGORY_STATUSES[self]


_CATEGORY_STATUSES = {
    StatusCategory.OPEN: frozenset({JobStatus.SCHEDULED, JobStatus.QUEUED, JobStatus.RUNNING}),
    StatusCategory.COMPLETED: frozenset({JobStatus.COMPLETED}),
    StatusCategory.CANCELLED: frozenset({JobStatus.CANCELLED, JobStatus.CANCELLING}),
    StatusCategory.INCOMPLETE: frozenset({JobStatus.INTERRUPTED, JobStatus.ABORTED, JobStatus.FAILED}),
}


def category_for(status: Optional[str]) -> Optional[StatusCategory]:
    """Category of a raw status string; None for anything unrecognized."""
    for category, statuses in _CATEGORY_STATUSES.items():
        if status in {s.value for s in statuses}:
            return category
    return None


@dataclass
class Job:
    """One entry of a ``job/list`` response."""
    id: int                       # position in this listing only
    job: str                      # opaque server token
    status: str
    name: Optional[str] = None
    status_msg: Optional[str] = None
    time_start: Optional[int] = None  # epoch milliseconds
    project: Optional[str] = None

    @classmethod
    def from_dict(cls, index: int, data: Dict[str, Any]) -> "Job":
        return cls(
            id=index,
            job=data.get("job", ""),
            status=data.get("status", ""),
            name=data.get("name"),
            status_msg=data.get("statusMsg"),
            time_start=data.get("timeStart"),
            project=data.get("project"),
        )

    @property
    def category(self) -> Optional[StatusCategory]:
        return category_for(self.status)

    @property
    def started_at(self) -> Optional[datetime]:
        if self.time_start is None:
            return None
        return datetime.fromtimestamp(self.time_start / 1000.0).astimezone()


# =============================================================================
# COMMAND RESULTS (rendered by jobs.render)
# =============================================================================

@dataclass
class JobListing:
    """
    Jobs selected by ``job list``.

    ``total`` counts the list the server returned, which holds only open
    jobs when ``open_only`` is set.
    """
    jobs: List[Job] = field(default_factory=list)
    total: int = 0
    open_only: bool = False


@dataclass
class JobStatusReport:
    """Outcome of ``job status``; ``job`` is None when the index was empty."""
    index: int
    job: Optional[Job] = None


@dataclass
class SubmitResult:
    name: Optional[str]
    job: Optional[str] = None
    preload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResultExport:
    """Outcome of ``job result``; ``found`` is False for the soft not-found case."""
    found: bool
    index: int
    has_results: bool = True
    destination: Optional[str] = None
    files: List[str] = field(default_factory=list)


@dataclass
class FlushReport:
    """Outcome of ``job flush``."""
    found: bool = True
    flushed: List[str] = field(default_factory=list)
    error: Optional[str] = None
    released_projects: List[str] = field(default_factory=list)
    directory_dropped: bool = False
