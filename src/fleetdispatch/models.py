from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any

from .errors import ResponseFormatError


@dataclass(slots=True)
class AgentBinary:
    host: str
    binary: str = ""


class AgentSet(dict[str, AgentBinary]):
    """Agents keyed by host. Every key equals the host of its value."""

    def add_host(self, host: str) -> None:
        if not host:
            return
        self[host] = AgentBinary(host=host)

    def hosts(self) -> list[str]:
        return sorted(self)


@dataclass(slots=True)
class Job:
    binary: str = ""
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: object) -> Job:
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise ValueError("Job definition must be a mapping")
        fields = {str(key): value for key, value in raw.items() if key != "binary"}
        try:
            json.dumps(fields)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Job definition is not JSON serializable: {exc}") from exc
        return cls(binary=str(raw.get("binary") or ""), fields=fields)

    def with_binary(self, binary: str) -> Job:
        return replace(self, binary=binary, fields=dict(self.fields))

    def to_payload(self) -> dict[str, Any]:
        payload = dict(self.fields)
        payload["binary"] = self.binary
        return payload


@dataclass(slots=True)
class UploadAck:
    binary: str

    @classmethod
    def from_json(cls, data: object) -> UploadAck:
        if not isinstance(data, dict) or not isinstance(data.get("binary"), str):
            raise ResponseFormatError(f"unexpected upload response: {data!r}")
        return cls(binary=data["binary"])


@dataclass(slots=True)
class QueueAck:
    queued: bool

    @classmethod
    def from_json(cls, data: object) -> QueueAck:
        if not isinstance(data, dict) or not isinstance(data.get("queued"), bool):
            raise ResponseFormatError(f"unexpected queue response: {data!r}")
        return cls(queued=data["queued"])


@dataclass(slots=True)
class DispatchResult:
    host: str
    binary: str | None
    queued: bool
    started_at: str
    finished_at: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.queued and self.error is None
