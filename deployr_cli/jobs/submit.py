"""
Job submission - publish a local R script as a DeployR job.

Steps, strictly in order:
    1. read the script text
    2. check for the companion workspace file ``.__job__.RData``
    3. create the shared ``di-jobs`` repository directory (idempotent)
    4. upload the companion file, if present, then delete it locally
    5. submit the script, referencing the upload as a preload object
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from deployr_cli.core.errors import ScriptNotFoundError
from deployr_cli.core.services import DeployRApiError
from deployr_cli.jobs.client import WORK_DIR, JobClient
from deployr_cli.jobs.types import SubmitResult

logger = logging.getLogger("job_submit")

RDATA_INPUTS = ".__job__.RData"


def read_script(filepath: Union[str, Path]) -> str:
    try:
        return Path(filepath).read_text(encoding="utf-8")
    except OSError as e:
        raise ScriptNotFoundError(str(filepath), e) from e


async def ensure_work_dir(client: JobClient) -> None:
    """Create ``di-jobs``; the server refusing because it exists is fine."""
    try:
        await client.create_directory(WORK_DIR)
    except DeployRApiError as e:
        logger.debug(f"Directory {WORK_DIR} not created ({e.error}); assuming it exists")


async def upload_inputs(
    client: JobClient,
    inputs: Path,
    clock: Callable[[], float] = time.time,
) -> Dict[str, Any]:
    """
    Upload the companion workspace and return the preload fields for submit.

    The local file is removed once the upload attempt is over, whether
    it worked or not.
    """
    filename = f"{int(clock() * 1000)}.RData"
    try:
        await client.upload_file(inputs, filename, WORK_DIR)
    finally:
        inputs.unlink(missing_ok=True)
        logger.debug(f"Removed local inputs {inputs}")

    return {
        "preloadobjectname": filename,
        "preloadobjectdirectory": WORK_DIR,
        "preloadobjectauthor": client.session.username,
    }


async def submit_job(
    client: JobClient,
    filepath: Union[str, Path],
    name: Optional[str] = None,
    cwd: Optional[Path] = None,
    clock: Callable[[], float] = time.time,
) -> SubmitResult:
    code = read_script(filepath)

    inputs = Path(cwd or Path.cwd()) / RDATA_INPUTS
    has_inputs = inputs.is_file()

    await ensure_work_dir(client)

    preload: Dict[str, Any] = {}
    if has_inputs:
        preload = await upload_inputs(client, inputs, clock)

    job = await client.submit_job(code, name=name, preload=preload)
    logger.info(f"Submitted {filepath} as job {job.get('job')}")

    return SubmitResult(
        name=job.get("name", name),
        job=job.get("job"),
        preload=preload,
    )
