#!/usr/bin/env python3
"""
DeployR CLI - command-line client for a DeployR server.

Usage:
    di endpoint http://localhost:7400      # point the CLI at a server
    di about                               # server information
    di login                               # prompt for credentials
    di job submit faithful.R --name test-job
    di job list --completed --incomplete
    di job status 0
    di job result 0 --dest ./out
    di job flush 0,1,2
    di job flush --all
"""

import argparse
import asyncio
import logging
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from deployr_cli import __version__
from deployr_cli.core.auth import PromptAuthenticator, logout
from deployr_cli.core.config import CLIConfig, load_config
from deployr_cli.core.errors import DeployRCliError
from deployr_cli.core.server import render_server_info, server_info
from deployr_cli.core.services import DeployRApiError, ServiceError
from deployr_cli.core.session import Session
from deployr_cli.jobs import render
from deployr_cli.jobs.client import JobClient
from deployr_cli.jobs.flush import flush_jobs, parse_ids
from deployr_cli.jobs.listing import job_status, list_jobs
from deployr_cli.jobs.result import fetch_result
from deployr_cli.jobs.submit import submit_job
from deployr_cli.jobs.types import StatusCategory

logger = logging.getLogger("di")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="di",
        description="DeployR CLI - work with DeployR managed jobs from the command line"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--diconf", "-j",
        type=Path,
        help="Config file to load (default: $DI_CONFIG or ~/.diconf)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug output"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("login", help="Log in to the configured DeployR server")
    subparsers.add_parser("logout", help="Log out and forget the session cookie")
    subparsers.add_parser("whoami", help="Print the logged-in username")
    subparsers.add_parser("about", help="Show DeployR server information for the configured endpoint")

    p_endpoint = subparsers.add_parser("endpoint", help="Show or set the DeployR server endpoint")
    p_endpoint.add_argument("url", nargs="?", help="Server base URL, e.g. http://localhost:7400")

    # job command and its actions
    p_job = subparsers.add_parser("job", help="Work with DeployR managed jobs")
    job_actions = p_job.add_subparsers(dest="action", help="Job actions")

    p_submit = job_actions.add_parser("submit", help="Submit an R script as a job")
    p_submit.add_argument("filepath", help="R script to submit")
    p_submit.add_argument("--name", "-n", help="Job name")

    p_list = job_actions.add_parser(
        "list",
        help="List jobs for the current user",
        description="List jobs. With no filter flag every job is listed."
    )
    p_list.add_argument("--completed", "-c", action="store_true", help="Completed jobs")
    p_list.add_argument(
        "--incomplete", "-i", action="store_true",
        help="Interrupted, aborted or failed jobs"
    )
    p_list.add_argument("--open", "-o", action="store_true", help="Scheduled, queued or running jobs")
    p_list.add_argument("--cancelled", "-a", action="store_true", help="Cancelled or cancelling jobs")

    p_status = job_actions.add_parser("status", help="Query the status of a job")
    p_status.add_argument("index", type=int, help="Job id as shown by `di job list`")

    p_result = job_actions.add_parser("result", help="Download and unpack a job's results")
    p_result.add_argument("index", type=int, nargs="?", default=0, help="Job id (default: 0)")
    p_result.add_argument("--dest", "-d", help="Destination directory")

    p_flush = job_actions.add_parser(
        "flush",
        help="Delete jobs",
        description="Delete DeployR managed jobs by id, or all of them."
    )
    p_flush.add_argument("ids", nargs="?", help="Comma-separated job ids, e.g. 0,1,2")
    p_flush.add_argument("--all", "-a", action="store_true", help="Flush all jobs")
    p_flush.set_defaults(usage=p_flush.format_help)

    p_job.set_defaults(usage=p_job.format_help)
    return parser


def selected_categories(args: argparse.Namespace) -> List[StatusCategory]:
    flags = {
        StatusCategory.COMPLETED: args.completed,
        StatusCategory.INCOMPLETE: args.incomplete,
        StatusCategory.OPEN: args.open,
        StatusCategory.CANCELLED: args.cancelled,
    }
    return [category for category, on in flags.items() if on]


async def run_job_command(args: argparse.Namespace, client: JobClient) -> int:
    if args.action == "submit":
        result = await submit_job(client, args.filepath, name=args.name)
        print(render.render_submit(result))

    elif args.action == "list":
        listing = await list_jobs(client, selected_categories(args))
        print(render.render_listing(listing))

    elif args.action == "status":
        print(render.render_status(await job_status(client, args.index)))

    elif args.action == "result":
        print(render.render_result(await fetch_result(client, args.index, dest=args.dest)))

    elif args.action == "flush":
        if not args.ids and not args.all:
            print(args.usage())
            return 0
        report = await flush_jobs(client, parse_ids(args.ids), flush_all=args.all)
        print(render.render_flush(report))

    else:
        print(args.usage())
    return 0


async def run_command(args: argparse.Namespace, config: CLIConfig) -> int:
    session = Session.from_config(config)

    if args.command == "whoami":
        print(session.username or "")

    elif args.command == "endpoint":
        if args.url:
            if not args.url.startswith(("http://", "https://")):
                raise DeployRCliError(f"Endpoint must start with http:// or https://, got '{args.url}'")
            config.set("endpoint", args.url.rstrip("/"))
            config.clear("cookie")
            config.save()
        print(config.get("endpoint") or "No DeployR endpoint configured.")

    elif args.command == "about":
        print(render_server_info(await server_info(session)))

    elif args.command == "login":
        await PromptAuthenticator().login(session)
        print(f"✓ logged in as {session.username}")

    elif args.command == "logout":
        await logout(session)
        print("✓ logged out")

    elif args.command == "job":
        return await run_job_command(args, JobClient(session))

    return 0


def show_error(command: str, err: BaseException) -> None:
    """Report a failed command: condensed for API errors, full trace otherwise."""
    logger.error(f"Error running command {command}")

    if isinstance(err, DeployRApiError):
        logger.error(f"DeployR API error on call \"{err.call}\"")
        logger.error(f"Error Code: {err.error_code}")
        logger.error(f"Error: {err.error}")
    elif isinstance(err, (DeployRCliError, ServiceError)):
        for line in str(err).splitlines():
            logger.error(line)
        logger.debug("Traceback:\n" + "".join(traceback.format_exception(type(err), err, err.__traceback__)))
    else:
        for line in traceback.format_exception(type(err), err, err.__traceback__):
            for trace in line.rstrip().splitlines():
                logger.error(trace)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    command = " ".join(filter(None, [args.command, getattr(args, "action", None)]))
    try:
        config = load_config(args.diconf)
        return asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        show_error(command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
