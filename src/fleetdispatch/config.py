from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

PROVIDERS = {"digitalocean", "static"}


@dataclass(slots=True)
class LookupConfig:
    provider: str = "digitalocean"
    token_env: str = "DO_TOKEN"
    tags: dict[str, list[str]] = field(default_factory=dict)


@dataclass(slots=True)
class AgentConfig:
    timeout_seconds: float = 30
    token_env: str | None = None


@dataclass(slots=True)
class AppConfig:
    lookup: LookupConfig
    agent: AgentConfig
    log: Path


def _mapping(raw: dict, key: str) -> dict:
    value = raw.get(key, {}) or {}
    if not isinstance(value, dict):
        raise ValueError(f"`{key}` must be a mapping")
    return value


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path).expanduser().resolve()
    raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("Config root must be a mapping")

    lookup_raw = _mapping(raw, "lookup")
    agent_raw = _mapping(raw, "agent")

    tags_raw = lookup_raw.get("tags", {}) or {}
    if not isinstance(tags_raw, dict):
        raise ValueError("`lookup.tags` must be a mapping")
    tags: dict[str, list[str]] = {}
    for tag, hosts in tags_raw.items():
        if not isinstance(hosts, list):
            raise ValueError(f"`lookup.tags.{tag}` must be a list of hosts")
        tags[str(tag)] = [str(host) for host in hosts]

    lookup = LookupConfig(
        provider=str(lookup_raw.get("provider", "digitalocean")).lower(),
        token_env=str(lookup_raw.get("token_env", "DO_TOKEN")),
        tags=tags,
    )
    if lookup.provider not in PROVIDERS:
        raise ValueError("`lookup.provider` must be either `digitalocean` or `static`")

    token_env = agent_raw.get("token_env")
    agent = AgentConfig(
        timeout_seconds=float(agent_raw.get("timeout_seconds", 30)),
        token_env=str(token_env) if token_env else None,
    )
    if agent.timeout_seconds <= 0:
        raise ValueError("`agent.timeout_seconds` must be > 0")

    log_path = Path(str(raw.get("log", "fleetdispatch.log"))).expanduser()
    if not log_path.is_absolute():
        log_path = config_path.parent / log_path

    return AppConfig(lookup=lookup, agent=agent, log=log_path)


def load_job(path: str | Path) -> object:
    return yaml.safe_load(Path(path).expanduser().read_text(encoding="utf-8"))
