"""
Job Client - remote calls behind the ``di job`` commands.

Each method is one DeployR route. Every call:
- builds a fresh transport from the Session (endpoint + cookie)
- runs the blocking request off the event loop
- goes through ``with_auth_retry``: one login and one re-issue on
  "unauthorized", every other error straight to the caller

Usage:
    from deployr_cli.jobs.client import JobClient

    client = JobClient(session, authenticator)
    jobs = await client.list_jobs()
    job = await client.submit_job("print(1)", name="test-job")
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from deployr_cli.core.auth import Authenticator, PromptAuthenticator, with_auth_retry
from deployr_cli.core.session import Session
from deployr_cli.jobs.types import Job

logger = logging.getLogger("job_client")

# Shared repository directory for every job submitted by this CLI
WORK_DIR = "di-jobs"
UPLOAD_MESSAGE = "DeployR CLI (job submit inputs) upload."


class JobClient:
    """Authenticated access to the DeployR job, project and repository routes."""

    def __init__(self, session: Session, authenticator: Optional[Authenticator] = None):
        self.session = session
        self.authenticator = authenticator or PromptAuthenticator()

    async def _call(self, route: str, data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        async def attempt():
            return await asyncio.to_thread(self.session.call, route, data)

        response = await with_auth_retry(self.session, self.authenticator, attempt)
        logger.debug(f"{route} ok")
        return response

    # =========================================================================
    # JOBS
    # =========================================================================

    async def list_jobs(self, openonly: Optional[bool] = None) -> List[Job]:
        """All jobs of the current user, ids assigned by position."""
        response = await self._call("job/list", {"openonly": openonly})
        return [Job.from_dict(i, raw) for i, raw in enumerate(response.get("jobs") or [])]

    async def query_job(self, token: str, extended: bool = True) -> Dict[str, Any]:
        response = await self._call("job/query", {"job": token, "extended": extended})
        return response.get("job") or {}

    async def submit_job(
        self,
        code: str,
        name: Optional[str] = None,
        preload: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": code, "name": name}
        payload.update(preload or {})
        response = await self._call("job/submit", payload)
        return response.get("job") or {}

    async def delete_jobs(self, tokens: Sequence[str]) -> Dict[str, Any]:
        # Comma-joined only here, at the wire boundary
        return await self._call("job/delete", {"job": ",".join(tokens)})

    # =========================================================================
    # PROJECTS
    # =========================================================================

    async def export_project(self, project: str, dest: Path) -> Path:
        """Stream the project archive into ``dest``."""
        async def attempt():
            return await asyncio.to_thread(
                self.session.download,
                "project/export",
                Path(dest),
                {"project": project},
            )

        return await with_auth_retry(self.session, self.authenticator, attempt)

    async def close_project(self, project: str) -> Dict[str, Any]:
        return await self._call("project/close", {"project": project})

    # =========================================================================
    # REPOSITORY
    # =========================================================================

    async def create_directory(self, directory: str) -> Dict[str, Any]:
        return await self._call("repository/directory/create", {"directory": directory})

    async def delete_directory(self, directory: str) -> Dict[str, Any]:
        return await self._call("repository/directory/delete", {"directory": directory})

    async def upload_file(
        self,
        path: Path,
        filename: str,
        directory: str,
        message: str = UPLOAD_MESSAGE,
    ) -> Dict[str, Any]:
        """Upload ``path`` as a new version of ``directory/filename``."""
        data = {
            "filename": filename,
            "directory": directory,
            "newversion": True,
            "newversionmsg": message,
        }

        def send():
            with open(path, "rb") as f:
                return self.session.call(
                    "repository/file/upload", data, files={"file": (filename, f)}
                )

        async def attempt():
            return await asyncio.to_thread(send)

        return await with_auth_retry(self.session, self.authenticator, attempt)
