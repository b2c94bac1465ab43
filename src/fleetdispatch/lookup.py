from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

import requests

from .app_logging import log_with_fields
from .config import LookupConfig
from .errors import InventoryError, MissingTokenError
from .models import AgentSet
from .transport import RequestsTransport, Transport, status_text

DIGITALOCEAN_API = "https://api.digitalocean.com/v2"
DROPLET_PAGE_SIZE = 200

logger = logging.getLogger("fleetdispatch.lookup")


class LookupService(Protocol):
    def addresses(self, tag: str) -> AgentSet: ...


def droplet_address(droplet: object) -> str | None:
    """Pick the address an agent is reachable on: first v6, else first v4.

    Malformed records are treated as having no address.
    """
    if not isinstance(droplet, Mapping):
        return None
    networks = droplet.get("networks")
    if not isinstance(networks, Mapping):
        return None
    for family in ("v6", "v4"):
        entries = networks.get(family) or []
        if not isinstance(entries, list):
            return None
        if entries:
            first = entries[0]
            if not isinstance(first, Mapping):
                return None
            address = first.get("ip_address")
            return str(address) if address else None
    return None


class DigitalOcean:
    """Finds agents on DigitalOcean droplets carrying a given tag."""

    def __init__(self, token: str, transport: Transport | None = None) -> None:
        if not token:
            raise MissingTokenError("missing digitalocean token - have you set $DO_TOKEN?")
        self.transport = transport if transport is not None else RequestsTransport(token=token)

    def list_by_tag(self, tag: str) -> list[dict[str, Any]]:
        request = requests.Request(
            "GET",
            f"{DIGITALOCEAN_API}/droplets",
            params={"tag_name": tag, "per_page": DROPLET_PAGE_SIZE},
        )
        with self.transport.execute(request) as response:
            if not response.ok:
                raise InventoryError(f"droplet lookup failed: {status_text(response)}")
            payload = response.json()
        droplets = payload.get("droplets") if isinstance(payload, dict) else None
        if not isinstance(droplets, list):
            raise InventoryError("droplet lookup returned no `droplets` list")
        return droplets

    def addresses(self, tag: str) -> AgentSet:
        agents = AgentSet()
        try:
            droplets = self.list_by_tag(tag)
        except (requests.RequestException, InventoryError, ValueError) as exc:
            log_with_fields(logger, logging.WARNING, "lookup_failed", tag=tag, error=str(exc))
            return agents

        for droplet in droplets:
            address = droplet_address(droplet)
            if address is None:
                name = droplet.get("name") if isinstance(droplet, Mapping) else None
                log_with_fields(logger, logging.INFO, "droplet_skipped", tag=tag, droplet=name)
                continue
            agents.add_host(address)
        return agents


class StaticLookup:
    def __init__(self, hosts_by_tag: Mapping[str, Iterable[str]]) -> None:
        self.hosts_by_tag = {tag: list(hosts) for tag, hosts in hosts_by_tag.items()}

    def addresses(self, tag: str) -> AgentSet:
        agents = AgentSet()
        for host in self.hosts_by_tag.get(tag, []):
            agents.add_host(host)
        return agents


def build_lookup(config: LookupConfig, environ: Mapping[str, str]) -> LookupService:
    if config.provider == "static":
        return StaticLookup(config.tags)
    return DigitalOcean(environ.get(config.token_env, ""))
