"""
Shared pytest fixtures for CI-safe testing.

All fixtures use temporary directories and a scripted in-memory DeployR
server - no network, no hardcoded paths.
"""

import sys
from pathlib import Path

# Add project root to sys.path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import shutil
import tempfile
from typing import Any, Dict, Generator, List, Optional

import pytest

from deployr_cli.core.config import CLIConfig
from deployr_cli.core.services import DeployRApiError, ServiceConfig
from deployr_cli.core.session import Session
from deployr_cli.jobs.client import JobClient


class FakeDeployR:
    """
    Stand-in for ServiceClient that answers from per-route scripts.

    ``on(route, r1, r2, ...)`` queues responses; the last one repeats.
    A response may be a dict, bytes (for downloads), an exception to
    raise, or a callable taking the form data.
    """

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.configs: List[ServiceConfig] = []
        self._scripts: Dict[str, list] = {}
        self.closed = 0

    def on(self, route: str, *responses) -> "FakeDeployR":
        self._scripts[route] = list(responses)
        return self

    def factory(self, config: ServiceConfig) -> "FakeDeployR":
        self.configs.append(config)
        return self

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.closed += 1

    @property
    def routes(self) -> List[str]:
        return [c["route"] for c in self.calls]

    def data_for(self, route: str) -> Dict[str, Any]:
        return next(c["data"] for c in self.calls if c["route"] == route)

    def _next(self, route: str, data: Dict[str, Any]):
        script = self._scripts.get(route)
        if not script:
            return {}
        response = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(data)
        return response

    def call(self, route, data=None, files=None, timeout=None):
        record = {
            "route": route,
            "data": dict(data or {}),
            "cookie": self.configs[-1].cookie if self.configs else None,
            "files": {},
        }
        for field, (filename, handle) in (files or {}).items():
            record["files"][field] = (filename, handle.read())
        self.calls.append(record)
        return self._next(route, record["data"])

    def download(self, route, dest, data=None, timeout=None):
        self.calls.append({"route": route, "data": dict(data or {}), "files": {}})
        content = self._next(route, dict(data or {}))
        Path(dest).write_bytes(content)
        return dest


class FakeAuthenticator:
    """Counts logins and hands out a fresh cookie."""

    def __init__(self, cookie: str = "fresh-cookie", error: Optional[Exception] = None):
        self.cookie = cookie
        self.error = error
        self.logins = 0

    async def login(self, session: Session) -> None:
        self.logins += 1
        if self.error:
            raise self.error
        session.cookie = self.cookie


def auth_error(call: str = "/r/job/list") -> DeployRApiError:
    return DeployRApiError(call, 401, "Unauthorized")


def job_list(*jobs: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "jobs": list(jobs)}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Provides a temporary directory for tests.

    Automatically cleaned up after test completes.
    """
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def fake_server() -> FakeDeployR:
    return FakeDeployR()


@pytest.fixture
def authenticator() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def config(temp_dir: Path) -> CLIConfig:
    return CLIConfig(temp_dir / ".diconf", {
        "endpoint": "http://deployr.test:7400",
        "username": "testuser",
        "cookie": "stale-cookie",
    })


@pytest.fixture
def session(config: CLIConfig, fake_server: FakeDeployR) -> Session:
    return Session.from_config(config, client_factory=fake_server.factory)


@pytest.fixture
def client(session: Session, authenticator: FakeAuthenticator) -> JobClient:
    return JobClient(session, authenticator)
