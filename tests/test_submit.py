"""
Tests for the job submission pipeline (deployr_cli/jobs/submit.py).
"""

import asyncio

import pytest

from deployr_cli.core.errors import ScriptNotFoundError
from deployr_cli.core.services import DeployRApiError
from deployr_cli.jobs.client import WORK_DIR
from deployr_cli.jobs.render import render_submit
from deployr_cli.jobs.submit import RDATA_INPUTS, submit_job

from conftest import auth_error


def fixed_clock():
    return 1425465723.5


@pytest.fixture
def script(temp_dir):
    path = temp_dir / "faithful.R"
    path.write_text("print(1)", encoding="utf-8")
    return path


def submitted(fake_server):
    fake_server.on("job/submit", lambda data: {
        "success": True,
        "job": {"job": "JOB-1", "name": data.get("name"), "status": "Queued"},
    })


class TestSubmitWithoutInputs:

    def test_payload_has_code_and_name_only(self, client, fake_server, script, temp_dir):
        submitted(fake_server)

        result = asyncio.run(submit_job(client, script, name="test-job", cwd=temp_dir))

        assert fake_server.routes == ["repository/directory/create", "job/submit"]
        assert fake_server.data_for("job/submit") == {"code": "print(1)", "name": "test-job"}
        assert result.preload == {}
        assert result.job == "JOB-1"
        assert "test-job" in render_submit(result)

    def test_directory_created_with_shared_name(self, client, fake_server, script, temp_dir):
        submitted(fake_server)

        asyncio.run(submit_job(client, script, cwd=temp_dir))

        assert fake_server.data_for("repository/directory/create") == {"directory": WORK_DIR}

    def test_existing_directory_is_not_an_error(self, client, fake_server, script, temp_dir):
        fake_server.on(
            "repository/directory/create",
            DeployRApiError("/r/repository/directory/create", 900, "directory exists"),
        )
        submitted(fake_server)

        result = asyncio.run(submit_job(client, script, name="x", cwd=temp_dir))

        assert result.name == "x"
        assert fake_server.routes[-1] == "job/submit"

    def test_submit_failure_propagates(self, client, fake_server, script, temp_dir):
        fake_server.on("job/submit", DeployRApiError("/r/job/submit", 900, "syntax error"))

        with pytest.raises(DeployRApiError):
            asyncio.run(submit_job(client, script, cwd=temp_dir))

    def test_auth_failure_on_directory_logs_in_once(self, client, fake_server, authenticator, script, temp_dir):
        fake_server.on("repository/directory/create", auth_error("/r/repository/directory/create"), {"success": True})
        submitted(fake_server)

        asyncio.run(submit_job(client, script, cwd=temp_dir))

        assert authenticator.logins == 1
        assert fake_server.routes == [
            "repository/directory/create",
            "repository/directory/create",
            "job/submit",
        ]
        # Later steps use the refreshed cookie
        assert fake_server.calls[-1]["cookie"] == "fresh-cookie"


class TestSubmitWithInputs:

    @pytest.fixture
    def inputs(self, temp_dir):
        path = temp_dir / RDATA_INPUTS
        path.write_bytes(b"RDX2\nworkspace")
        return path

    def test_uploads_then_references_preload(self, client, fake_server, script, temp_dir, inputs):
        submitted(fake_server)

        result = asyncio.run(submit_job(client, script, name="with-data", cwd=temp_dir, clock=fixed_clock))

        assert fake_server.routes == [
            "repository/directory/create",
            "repository/file/upload",
            "job/submit",
        ]

        upload = fake_server.calls[1]
        assert upload["data"]["filename"] == "1425465723500.RData"
        assert upload["data"]["directory"] == WORK_DIR
        assert upload["data"]["newversion"] is True
        assert upload["files"]["file"] == ("1425465723500.RData", b"RDX2\nworkspace")

        assert fake_server.data_for("job/submit") == {
            "code": "print(1)",
            "name": "with-data",
            "preloadobjectname": "1425465723500.RData",
            "preloadobjectdirectory": WORK_DIR,
            "preloadobjectauthor": "testuser",
        }
        assert result.preload["preloadobjectauthor"] == "testuser"
        assert not inputs.exists()

    def test_inputs_removed_even_when_upload_fails(self, client, fake_server, script, temp_dir, inputs):
        fake_server.on("repository/file/upload", DeployRApiError("/r/repository/file/upload", 900, "quota"))

        with pytest.raises(DeployRApiError):
            asyncio.run(submit_job(client, script, cwd=temp_dir))

        assert not inputs.exists()
        assert "job/submit" not in fake_server.routes


class TestReadScript:

    def test_missing_script_has_hint(self, client, fake_server, temp_dir):
        with pytest.raises(ScriptNotFoundError) as exc_info:
            asyncio.run(submit_job(client, temp_dir / "nope.R", cwd=temp_dir))

        message = str(exc_info.value)
        assert "working directory" in message
        assert "nope.R" in message
        assert fake_server.calls == []
