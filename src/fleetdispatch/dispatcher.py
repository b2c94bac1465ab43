from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

import requests

from .app_logging import log_with_fields
from .client import AgentClient
from .errors import DispatchError
from .lookup import LookupService
from .models import AgentSet, DispatchResult, Job

# Failures that end one host's dispatch without stopping the rest of the fleet.
HOST_ERRORS = (DispatchError, OSError, requests.RequestException)


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Dispatcher:
    def __init__(
        self,
        lookup: LookupService,
        client: AgentClient,
        logger: logging.Logger,
    ) -> None:
        self.lookup = lookup
        self.client = client
        self.logger = logger

    def resolve(self, tag: str) -> AgentSet:
        agents = self.lookup.addresses(tag)
        log_with_fields(
            self.logger,
            logging.INFO,
            "agents_resolved",
            tag=tag,
            hosts=agents.hosts(),
        )
        return agents

    def dispatch(self, tag: str, schedule: Path, job: Job) -> list[DispatchResult]:
        agents = self.resolve(tag)
        if not agents:
            log_with_fields(self.logger, logging.WARNING, "no_agents_found", tag=tag)
        return [self.dispatch_host(host, schedule, job) for host in agents.hosts()]

    def dispatch_host(self, host: str, schedule: Path, job: Job) -> DispatchResult:
        """Upload ``schedule`` to one agent, then queue ``job`` against the stored binary."""
        result = DispatchResult(host=host, binary=None, queued=False, started_at=utc_now_iso())
        try:
            agent = self.client.upload_schedule(schedule, host)
            result.binary = agent.binary
            log_with_fields(
                self.logger,
                logging.INFO,
                "schedule_uploaded",
                host=host,
                binary=agent.binary,
                schedule=str(schedule),
            )
            self.client.queue_job(agent, job)
            result.queued = True
            log_with_fields(self.logger, logging.INFO, "job_queued", host=host, binary=agent.binary)
        except HOST_ERRORS as exc:
            result.error = str(exc)
            log_with_fields(
                self.logger,
                logging.ERROR,
                "dispatch_failed",
                host=host,
                binary=result.binary,
                error=str(exc),
            )
        result.finished_at = utc_now_iso()
        return result
