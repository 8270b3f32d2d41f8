"""
Jobs - the ``di job`` subsystem.

Usage:
    from deployr_cli.jobs import JobClient, list_jobs, StatusCategory

    client = JobClient(session)
    listing = await list_jobs(client, [StatusCategory.COMPLETED])
"""

from deployr_cli.jobs.client import JobClient, WORK_DIR
from deployr_cli.jobs.flush import flush_jobs, parse_ids, plan_flush
from deployr_cli.jobs.listing import job_status, list_jobs, select_jobs
from deployr_cli.jobs.result import classify_member, extract_archive, fetch_result
from deployr_cli.jobs.submit import RDATA_INPUTS, submit_job
from deployr_cli.jobs.types import (
    FlushReport,
    Job,
    JobListing,
    JobStatus,
    JobStatusReport,
    ResultExport,
    StatusCategory,
    SubmitResult,
    category_for,
)

__all__ = [
    # Client
    "JobClient",
    "WORK_DIR",
    # Operations
    "submit_job",
    "list_jobs",
    "job_status",
    "fetch_result",
    "flush_jobs",
    # Helpers
    "select_jobs",
    "classify_member",
    "extract_archive",
    "parse_ids",
    "plan_flush",
    "category_for",
    "RDATA_INPUTS",
    # Types
    "Job",
    "JobStatus",
    "StatusCategory",
    "JobListing",
    "JobStatusReport",
    "SubmitResult",
    "ResultExport",
    "FlushReport",
]
