"""
Job flush - bulk delete jobs and reclaim the shared ``di-jobs`` directory.

Flow:
    1. fetch the live listing (empty → nothing to do)
    2. pick targets: every job with ``--all``, else the listed ids
    3. remember target projects so they can be released afterwards
    4. ``job/delete`` with the target tokens
    5. always, even if the delete failed (its error is raised afterwards):
         - ``project/close`` for each remembered project
         - ``repository/directory/delete`` when every listed job was targeted

The directory holds preload uploads for all jobs, so it is only dropped
when no listed job is left behind.
"""

import logging
from typing import List, Optional, Sequence

from deployr_cli.core.errors import DeployRCliError
from deployr_cli.core.services import ServiceError
from deployr_cli.jobs.client import WORK_DIR, JobClient
from deployr_cli.jobs.types import FlushReport, Job

logger = logging.getLogger("job_flush")


def parse_ids(raw: Optional[str]) -> List[int]:
    """``"0,2, 5"`` → ``[0, 2, 5]``; blanks ignored."""
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            raise DeployRCliError(f"Invalid job id '{part}': ids are listing positions (0, 1, ...)")
    return ids


def plan_flush(jobs: Sequence[Job], ids: Sequence[int], flush_all: bool = False):
    """
    Work out what a flush touches.

    Returns (targets, all_addressed): the jobs to delete, and whether
    every listed job is among them.
    """
    requested = set(ids)
    if flush_all:
        return list(jobs), True

    targets = [job for job in jobs if job.id in requested]
    all_addressed = all(job.id in requested for job in jobs)
    return targets, all_addressed


async def _release_projects(client: JobClient, projects: Sequence[str], report: FlushReport) -> None:
    for project in projects:
        try:
            await client.close_project(project)
            report.released_projects.append(project)
        except ServiceError as e:
            logger.warning(f"Could not release project {project}: {e}")


async def _finalize(
    client: JobClient,
    projects: Sequence[str],
    all_addressed: bool,
    report: FlushReport,
    failing: bool = False,
) -> None:
    """
    Release projects, then drop ``di-jobs`` when every listed job was targeted.

    A directory-delete error propagates, unless the delete itself already
    failed (``failing``): that first error is the one reported.
    """
    if projects:
        await _release_projects(client, projects, report)
    if not all_addressed:
        return

    try:
        await client.delete_directory(WORK_DIR)
        report.directory_dropped = True
    except ServiceError as e:
        if not failing:
            raise
        logger.warning(f"Could not delete repository directory {WORK_DIR}: {e}")


async def flush_jobs(
    client: JobClient,
    ids: Sequence[int] = (),
    flush_all: bool = False,
) -> FlushReport:
    """
    Delete the targeted jobs and run the cleanup finalizer.

    Raises:
        DeployRApiError: ``job/delete`` or ``repository/directory/delete``
            failed; raised after the finalizer has run
    """
    jobs = await client.list_jobs()
    if not jobs:
        return FlushReport(found=False)

    targets, all_addressed = plan_flush(jobs, ids, flush_all)
    tokens = [job.job for job in targets]
    projects = [job.project for job in targets if job.project]

    report = FlushReport(flushed=tokens)
    if not tokens:
        report.error = f"No listed job matches ids {', '.join(str(i) for i in ids)}"
        return report

    try:
        response = await client.delete_jobs(tokens)
    except Exception:
        await _finalize(client, projects, all_addressed, report, failing=True)
        raise

    # A successful call can still carry a server message about jobs it skipped
    report.error = response.get("error")
    await _finalize(client, projects, all_addressed, report)

    if report.error:
        report.flushed = []
    logger.info(
        f"Flushed {len(report.flushed)} jobs, released {len(report.released_projects)} projects, "
        f"directory dropped: {report.directory_dropped}"
    )
    return report
