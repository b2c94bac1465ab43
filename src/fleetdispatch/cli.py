from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

import requests

from .app_logging import log_with_fields, setup_logger
from .client import AgentClient
from .config import AppConfig, load_config, load_job
from .dispatcher import Dispatcher
from .errors import DispatchError, MissingTokenError
from .lookup import build_lookup
from .models import AgentBinary, Job
from .transport import RequestsTransport


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleetdispatch",
        description="Upload schedules to fleet agents and queue jobs against them",
    )
    parser.add_argument("--config", required=True, help="Path to fleetdispatch YAML config")
    parser.add_argument("--verbose", action="store_true", help="Log at debug level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    lookup = subparsers.add_parser("lookup", help="List agent hosts carrying a tag")
    lookup.add_argument("--tag", required=True, help="Fleet tag to resolve")

    upload = subparsers.add_parser("upload", help="Upload a schedule to a single agent")
    upload.add_argument("--host", required=True, help="Agent host")
    upload.add_argument("--schedule", required=True, type=Path, help="Schedule binary to upload")

    queue = subparsers.add_parser("queue", help="Queue a job against an uploaded schedule")
    queue.add_argument("--host", required=True, help="Agent host")
    queue.add_argument("--binary", required=True, help="Binary reference returned by upload")
    queue.add_argument("--job", required=True, type=Path, help="YAML or JSON job definition")

    dispatch = subparsers.add_parser("dispatch", help="Upload and queue on every agent with a tag")
    dispatch.add_argument("--tag", required=True, help="Fleet tag to resolve")
    dispatch.add_argument("--schedule", required=True, type=Path, help="Schedule binary to upload")
    dispatch.add_argument("--job", required=True, type=Path, help="YAML or JSON job definition")
    return parser


def _agent_client(config: AppConfig, environ: Mapping[str, str]) -> AgentClient:
    token = environ.get(config.agent.token_env, "") if config.agent.token_env else ""
    transport = RequestsTransport(token=token or None, timeout_seconds=config.agent.timeout_seconds)
    return AgentClient(transport)


def cmd_lookup(config: AppConfig, tag: str, environ: Mapping[str, str]) -> int:
    lookup = build_lookup(config.lookup, environ)
    for host in lookup.addresses(tag).hosts():
        print(host)
    return 0


def cmd_upload(config: AppConfig, host: str, schedule: Path, environ: Mapping[str, str]) -> int:
    agent = _agent_client(config, environ).upload_schedule(schedule, host)
    print(agent.binary)
    return 0


def cmd_queue(config: AppConfig, host: str, binary: str, job_path: Path, environ: Mapping[str, str]) -> int:
    job = Job.from_mapping(load_job(job_path))
    _agent_client(config, environ).queue_job(AgentBinary(host=host, binary=binary), job)
    print(f"queued on {host}")
    return 0


def cmd_dispatch(
    config: AppConfig,
    tag: str,
    schedule: Path,
    job_path: Path,
    logger: logging.Logger,
    environ: Mapping[str, str],
) -> int:
    job = Job.from_mapping(load_job(job_path))
    dispatcher = Dispatcher(
        lookup=build_lookup(config.lookup, environ),
        client=_agent_client(config, environ),
        logger=logger,
    )
    results = dispatcher.dispatch(tag, schedule, job)

    failed = 0
    for result in results:
        if result.ok:
            print(f"  {result.host:40} queued binary={result.binary}")
        else:
            failed += 1
            print(f"  {result.host:40} FAILED {result.error}")
    log_with_fields(
        logger,
        logging.INFO,
        "dispatch_finished",
        tag=tag,
        hosts=len(results),
        failed=failed,
    )
    return 1 if failed else 0


def main(argv: list[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    env = os.environ if environ is None else environ
    config = load_config(args.config)
    logger = setup_logger(config.log, verbose=bool(args.verbose))

    try:
        if args.command == "lookup":
            return cmd_lookup(config, args.tag, env)
        if args.command == "upload":
            return cmd_upload(config, args.host, args.schedule, env)
        if args.command == "queue":
            return cmd_queue(config, args.host, args.binary, args.job, env)
        if args.command == "dispatch":
            return cmd_dispatch(config, args.tag, args.schedule, args.job, logger, env)
    except MissingTokenError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except (DispatchError, OSError, requests.RequestException, ValueError) as exc:
        log_with_fields(logger, logging.ERROR, "command_failed", command=args.command, error=str(exc))
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        return 1
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
