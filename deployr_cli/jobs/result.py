"""
Job results - export a job's project and unpack it into friendly folders.

The exported zip has a single top-level directory. Its content is
flattened and regrouped on extraction:

    *.rData              → <dest>/workspace/<basename>
    *.txt, *.ser, *.r    → dropped
    anything else        → <dest>/files/<basename>

Extension matching is exact and case-sensitive (``.R`` is kept).
"""

import asyncio
import logging
import re
import shutil
import zipfile
from datetime import tzinfo
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

from deployr_cli.core.dates import format_timestamp
from deployr_cli.core.errors import ArchiveError
from deployr_cli.jobs.client import JobClient
from deployr_cli.jobs.listing import job_at
from deployr_cli.jobs.types import ResultExport

logger = logging.getLogger("job_result")

EXPORT_ARCHIVE = "__deployr_export__.zip"
WORKSPACE_EXT = ".rData"
DROPPED_EXTS = frozenset({".txt", ".ser", ".r"})

_PATH_PREFIX = re.compile(r"^.*(\\|/|:)")


def classify_member(name: str) -> Optional[str]:
    """Relative destination for an archive entry, or None to drop it."""
    ext = PurePosixPath(name.replace("\\", "/")).suffix
    if ext in DROPPED_EXTS:
        return None

    base = _PATH_PREFIX.sub("", name)
    if ext == WORKSPACE_EXT:
        return f"workspace/{base}"
    return f"files/{base}"


def extract_archive(archive: Path, dest: Path) -> List[str]:
    """
    Extract ``archive`` into ``dest`` using ``classify_member``.

    Returns the written paths relative to ``dest``.

    Raises:
        ArchiveError: the archive is not a readable zip
    """
    written = []
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                target = classify_member(info.filename)
                if target is None:
                    logger.debug(f"Dropping {info.filename}")
                    continue

                out_path = dest / target
                out_path.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(out_path, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                written.append(target)
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(str(archive), e) from e

    return written


def result_destination(time_start: Optional[int], index: int, tz: Optional[tzinfo] = None) -> str:
    if time_start is None:
        return f"job-{index}"
    return format_timestamp(time_start, tz)


async def fetch_result(
    client: JobClient,
    index: Optional[int] = None,
    dest: Optional[Union[str, Path]] = None,
    cwd: Optional[Path] = None,
    tz: Optional[tzinfo] = None,
) -> ResultExport:
    """
    Download and unpack the results of the job at ``index`` (default 0).

    A missing job is a soft outcome (``found=False``), not an error.
    """
    index = index or 0
    cwd = Path(cwd or Path.cwd())

    jobs = await client.list_jobs()
    job = job_at(jobs, index)
    if job is None:
        return ResultExport(found=False, index=index)

    if not job.project:
        logger.info(f"Job {index} ({job.status}) has no exportable project")
        return ResultExport(found=True, index=index, has_results=False)

    destination = str(dest) if dest else result_destination(job.time_start, index, tz)
    archive = cwd / EXPORT_ARCHIVE

    try:
        await client.export_project(job.project, archive)
        files = await asyncio.to_thread(extract_archive, archive, cwd / destination)
    finally:
        archive.unlink(missing_ok=True)

    logger.info(f"Extracted {len(files)} files for job {index} into {destination}")
    return ResultExport(found=True, index=index, destination=destination, files=files)
