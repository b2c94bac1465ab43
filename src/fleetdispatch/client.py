from __future__ import annotations

import json
from pathlib import Path

import requests

from .errors import AgentStatusError, MissingHostError, QueueRejectedError, ResponseFormatError
from .models import AgentBinary, Job, QueueAck, UploadAck
from .transport import Transport, status_text

AGENT_PORT = 8081
UPLOAD_FIELD = "file"
QUEUE_OK_STATUSES = frozenset({200, 201})


def agent_url(host: str, path: str) -> str:
    """Build the agent URL on the fixed port; a host containing `:` is taken as an IPv6 literal and bracketed."""
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"http://{host}:{AGENT_PORT}/{path.lstrip('/')}"


def _decode(body: str) -> object:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise ResponseFormatError(f"invalid JSON from agent: {body!r}") from exc


class AgentClient:
    """Talks to the agent HTTP API: upload a schedule, then queue jobs against it."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def upload_schedule(self, schedule: str | Path, host: str) -> AgentBinary:
        """Upload ``schedule`` to ``host`` and return the agent's binary reference.

        Raises MissingHostError before touching the file or the network when
        ``host`` is empty, AgentStatusError on any status other than 200, and
        ResponseFormatError when the reply is not ``{"binary": "<ref>"}``.
        """
        if not host:
            raise MissingHostError()

        schedule_path = Path(schedule)
        with schedule_path.open("rb") as handle:
            content = handle.read()

        url = agent_url(host, "upload")
        request = requests.Request(
            "POST",
            url,
            files={UPLOAD_FIELD: (schedule_path.name, content, "application/octet-stream")},
        )
        with self.transport.execute(request) as response:
            if response.status_code != 200:
                raise AgentStatusError(status_text(response), url)
            ack = UploadAck.from_json(_decode(response.text))
        return AgentBinary(host=host, binary=ack.binary)

    def queue_job(self, agent: AgentBinary, job: Job) -> None:
        if not agent.host:
            raise MissingHostError()

        body = json.dumps(job.with_binary(agent.binary).to_payload())
        url = agent_url(agent.host, "queue")
        request = requests.Request(
            "POST",
            url,
            data=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        with self.transport.execute(request) as response:
            raw = response.text
            if response.status_code not in QUEUE_OK_STATUSES:
                raise AgentStatusError(status_text(response), url, raw)
        ack = QueueAck.from_json(_decode(raw))
        if not ack.queued:
            raise QueueRejectedError(raw)
