"""
Job listing, filtering and status lookup.

Every command starts from a fresh ``job/list``. Filtering is done
client-side on status categories:

    no category flag     → every job
    one or more flags    → jobs whose category is one of them
                           (unknown statuses never match)

Job ids are positions in the listing. Nothing guards against the
server list changing between the list call and a follow-up call in
the same command; an index may point at a different job by then.
"""

import logging
from typing import Iterable, List, Optional, Set

from deployr_cli.jobs.client import JobClient
from deployr_cli.jobs.types import Job, JobListing, JobStatusReport, StatusCategory

logger = logging.getLogger("job_listing")


def select_jobs(jobs: Iterable[Job], categories: Iterable[StatusCategory] = ()) -> List[Job]:
    """Keep jobs matching any requested category; all jobs when none requested."""
    wanted: Set[StatusCategory] = set(categories)
    if not wanted:
        return list(jobs)
    return [job for job in jobs if job.category in wanted]


def job_at(jobs: List[Job], index: Optional[int]) -> Optional[Job]:
    """Job at a listing index, or None when out of range."""
    index = index or 0
    if 0 <= index < len(jobs):
        return jobs[index]
    return None


async def list_jobs(client: JobClient, categories: Iterable[StatusCategory] = ()) -> JobListing:
    wanted = set(categories)
    # The server can pre-filter open jobs; only worth asking when that is all we want
    openonly = True if wanted == {StatusCategory.OPEN} else None

    jobs = await client.list_jobs(openonly=openonly)
    selected = select_jobs(jobs, wanted)
    logger.debug(f"{len(selected)}/{len(jobs)} jobs match {sorted(c.value for c in wanted)}")
    return JobListing(jobs=selected, total=len(jobs), open_only=bool(openonly))


async def job_status(client: JobClient, index: int) -> JobStatusReport:
    """Resolve a listing index and query its extended status."""
    jobs = await client.list_jobs()
    job = job_at(jobs, index)
    if job is None:
        return JobStatusReport(index=index)

    detail = await client.query_job(job.job)
    merged = Job.from_dict(job.id, {
        "job": job.job,
        "name": job.name,
        "status": job.status,
        "timeStart": job.time_start,
        "project": job.project,
        **detail,
    })
    return JobStatusReport(index=index, job=merged)
