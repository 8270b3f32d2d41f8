"""
Tests for bulk job deletion (deployr_cli/jobs/flush.py).
"""

import asyncio
from itertools import combinations

import pytest

from deployr_cli.core.errors import DeployRCliError
from deployr_cli.core.services import DeployRApiError, ServiceUnavailable
from deployr_cli.jobs.client import WORK_DIR
from deployr_cli.jobs.flush import flush_jobs, parse_ids, plan_flush
from deployr_cli.jobs.render import NO_JOBS, render_flush
from deployr_cli.jobs.types import Job

from conftest import job_list

THREE_JOBS = job_list(
    {"job": "AAA", "status": "Completed", "project": "PRJ-A"},
    {"job": "BBB", "status": "Failed"},
    {"job": "CCC", "status": "Completed", "project": "PRJ-C"},
)


class TestParseIds:

    def test_comma_separated(self):
        assert parse_ids("0,2, 5") == [0, 2, 5]

    def test_blank_parts_ignored(self):
        assert parse_ids("1,,") == [1]
        assert parse_ids(None) == []

    def test_garbage_rejected(self):
        with pytest.raises(DeployRCliError):
            parse_ids("0,AAA")


class TestPlanFlush:

    def test_all_addressed_iff_every_index_requested(self):
        jobs = [Job(id=i, job=f"J{i}", status="Completed") for i in range(4)]

        for size in range(0, 5):
            for ids in combinations(range(6), size):
                targets, all_addressed = plan_flush(jobs, ids)
                assert all_addressed == {0, 1, 2, 3}.issubset(ids)
                assert [t.id for t in targets] == [i for i in range(4) if i in ids]

    def test_all_flag_addresses_everything(self):
        jobs = [Job(id=i, job=f"J{i}", status="Running") for i in range(3)]

        targets, all_addressed = plan_flush(jobs, [], flush_all=True)

        assert targets == jobs
        assert all_addressed is True


class TestFlushJobs:

    def test_empty_listing_is_soft(self, client, fake_server):
        fake_server.on("job/list", job_list())

        report = asyncio.run(flush_jobs(client, [0]))

        assert report.found is False
        assert fake_server.routes == ["job/list"]
        assert render_flush(report) == NO_JOBS

    def test_partial_flush_keeps_directory(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)

        report = asyncio.run(flush_jobs(client, [0, 1]))

        assert fake_server.data_for("job/delete") == {"job": "AAA,BBB"}
        assert "repository/directory/delete" not in fake_server.routes
        assert fake_server.data_for("project/close") == {"project": "PRJ-A"}
        assert report.flushed == ["AAA", "BBB"]
        assert report.released_projects == ["PRJ-A"]
        assert report.directory_dropped is False
        assert render_flush(report) == "✓ jobs successfully flushed."

    def test_every_id_drops_directory(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)

        report = asyncio.run(flush_jobs(client, [2, 0, 1]))

        assert fake_server.routes == [
            "job/list",
            "job/delete",
            "project/close",
            "project/close",
            "repository/directory/delete",
        ]
        assert fake_server.data_for("job/delete") == {"job": "AAA,BBB,CCC"}
        assert fake_server.data_for("repository/directory/delete") == {"directory": WORK_DIR}
        assert report.directory_dropped is True

    def test_all_flag(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)

        report = asyncio.run(flush_jobs(client, flush_all=True))

        assert fake_server.data_for("job/delete") == {"job": "AAA,BBB,CCC"}
        assert report.released_projects == ["PRJ-A", "PRJ-C"]
        assert report.directory_dropped is True

    def test_delete_error_raised_after_cleanup(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)
        fake_server.on("job/delete", DeployRApiError("/r/job/delete", 900, "jobs are running"))

        with pytest.raises(DeployRApiError) as exc_info:
            asyncio.run(flush_jobs(client, flush_all=True))

        assert exc_info.value.error == "jobs are running"
        assert fake_server.routes[-3:] == ["project/close", "project/close", "repository/directory/delete"]

    def test_delete_error_wins_over_directory_error(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)
        fake_server.on("job/delete", DeployRApiError("/r/job/delete", 900, "jobs are running"))
        fake_server.on("repository/directory/delete", DeployRApiError("/r/repository/directory/delete", 900, "busy"))

        with pytest.raises(DeployRApiError) as exc_info:
            asyncio.run(flush_jobs(client, flush_all=True))

        assert exc_info.value.call == "/r/job/delete"

    def test_server_message_on_success_is_soft(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)
        fake_server.on("job/delete", {"success": True, "error": "some jobs were still running"})

        report = asyncio.run(flush_jobs(client, flush_all=True))

        assert report.error == "some jobs were still running"
        assert report.flushed == []
        assert report.directory_dropped is True
        assert render_flush(report).startswith("some jobs were still running")

    def test_transport_error_propagates_after_cleanup(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)
        fake_server.on("job/delete", ServiceUnavailable("http://deployr.test"))

        with pytest.raises(ServiceUnavailable):
            asyncio.run(flush_jobs(client, [0]))

        assert fake_server.routes[-1] == "project/close"

    def test_release_failure_does_not_block_directory(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)
        fake_server.on("project/close", DeployRApiError("/r/project/close", 900, "already closed"))

        report = asyncio.run(flush_jobs(client, flush_all=True))

        assert report.released_projects == []
        assert report.directory_dropped is True

    def test_directory_delete_error_propagates(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)
        fake_server.on("repository/directory/delete", DeployRApiError("/r/repository/directory/delete", 900, "in use"))

        with pytest.raises(DeployRApiError) as exc_info:
            asyncio.run(flush_jobs(client, flush_all=True))

        assert exc_info.value.error == "in use"
        assert fake_server.routes.count("project/close") == 2

    def test_unknown_ids_skip_delete(self, client, fake_server):
        fake_server.on("job/list", THREE_JOBS)

        report = asyncio.run(flush_jobs(client, [9]))

        assert fake_server.routes == ["job/list"]
        assert "9" in report.error
