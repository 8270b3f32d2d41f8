"""Text rendering for job command results."""

from typing import List, Optional, Sequence

from deployr_cli.jobs.types import (
    FlushReport,
    Job,
    JobListing,
    JobStatusReport,
    ResultExport,
    SubmitResult,
)

NO_JOBS = "No jobs are currently being managed."
NO_OPEN_JOBS = "No open jobs."

LIST_COLUMNS = (("Job", 10), ("Name", 20), ("Status", 15), ("Submit Time", 41))


def _cell(value: Optional[object], width: int) -> str:
    text = "" if value is None else str(value)
    if len(text) > width - 1:
        text = text[: width - 2] + "…"
    return text.ljust(width)


def _row(values: Sequence[object]) -> str:
    return "".join(_cell(v, w) for v, (_, w) in zip(values, LIST_COLUMNS)).rstrip()


def format_start(job: Job) -> str:
    started = job.started_at
    return f"{started:%a %b %d %Y %H:%M:%S %z}" if started else ""


def render_listing(listing: JobListing) -> str:
    if listing.total == 0:
        return NO_OPEN_JOBS if listing.open_only else NO_JOBS

    width = sum(w for _, w in LIST_COLUMNS)
    lines: List[str] = [
        _row([title for title, _ in LIST_COLUMNS]),
        "-" * width,
    ]
    for job in listing.jobs:
        lines.append(_row([job.id, job.name, job.status, format_start(job)]))

    if not listing.jobs:
        lines.append("No jobs match the selected filters.")
    return "\n".join(lines)


def render_status(report: JobStatusReport) -> str:
    job = report.job
    if job is None:
        return NO_JOBS

    rows = [
        ("Job", report.index),
        ("Name", job.name or ""),
        ("Status", job.status),
        ("Message", job.status_msg or ""),
    ]
    return "\n".join(f"{label:<10}{value}" for label, value in rows)


def render_submit(result: SubmitResult) -> str:
    return f"✓ job {result.name} submitted."


def render_result(export: ResultExport) -> str:
    if not export.found:
        return NO_JOBS
    if not export.has_results:
        return f"Job {export.index} has no results to export yet."
    return f"✓ job result written to \"{export.destination}\""


def render_flush(report: FlushReport) -> str:
    if not report.found:
        return NO_JOBS

    lines = [report.error if report.error else "✓ jobs successfully flushed."]
    if report.directory_dropped:
        lines.append("  removed shared repository directory")
    return "\n".join(lines)
