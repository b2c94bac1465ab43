from __future__ import annotations

import json
import unittest

import requests

from fleetdispatch.config import LookupConfig
from fleetdispatch.errors import MissingTokenError
from fleetdispatch.lookup import DigitalOcean, StaticLookup, build_lookup, droplet_address


def droplet(name: str, v4: list[str] | None = None, v6: list[str] | None = None) -> dict:
    return {
        "name": name,
        "networks": {
            "v4": [{"ip_address": ip, "type": "public"} for ip in v4 or []],
            "v6": [{"ip_address": ip, "type": "public"} for ip in v6 or []],
        },
    }


class FakeInventory:
    def __init__(self, droplets: list[dict] | None = None, status: int = 200, error: Exception | None = None) -> None:
        self.droplets = droplets or []
        self.status = status
        self.error = error
        self.requests: list[requests.Request] = []

    def execute(self, request: requests.Request) -> requests.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        response = requests.Response()
        response.status_code = self.status
        response.reason = "OK" if self.status == 200 else "Unauthorized"
        response._content = json.dumps({"droplets": self.droplets}).encode("utf-8")
        response._content_consumed = True
        response.encoding = "utf-8"
        return response


class DropletAddressTest(unittest.TestCase):
    def test_prefers_first_ipv6(self) -> None:
        record = droplet("a", v4=["10.0.0.5"], v6=["fe80::1", "fe80::2"])
        self.assertEqual(droplet_address(record), "fe80::1")

    def test_falls_back_to_first_ipv4(self) -> None:
        self.assertEqual(droplet_address(droplet("a", v4=["10.0.0.5", "10.0.0.6"])), "10.0.0.5")

    def test_no_address(self) -> None:
        self.assertIsNone(droplet_address(droplet("a")))
        self.assertIsNone(droplet_address({"name": "a"}))


class DigitalOceanTest(unittest.TestCase):
    def test_missing_token(self) -> None:
        with self.assertRaises(MissingTokenError):
            DigitalOcean("")

    def test_addresses_one_per_droplet(self) -> None:
        inventory = FakeInventory(
            [
                droplet("both", v4=["10.0.0.5"], v6=["fe80::1"]),
                droplet("v4-only", v4=["10.0.0.6"]),
                droplet("none"),
            ]
        )
        agents = DigitalOcean("token", transport=inventory).addresses("golo")

        self.assertEqual(agents.hosts(), ["10.0.0.6", "fe80::1"])
        for host, agent in agents.items():
            self.assertEqual(agent.host, host)
            self.assertEqual(agent.binary, "")

        request = inventory.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.url, "https://api.digitalocean.com/v2/droplets")
        self.assertEqual(request.params["tag_name"], "golo")

    def test_malformed_records_are_skipped(self) -> None:
        inventory = FakeInventory(
            [
                {"name": "bad-v6", "networks": {"v6": "oops"}},
                {"name": "bad-entry", "networks": {"v4": ["10.0.0.9"]}},
                "not-a-droplet",
                {"name": "ok", "networks": {"v4": [{"ip_address": "10.0.0.5"}]}},
            ]
        )
        agents = DigitalOcean("token", transport=inventory).addresses("golo")
        self.assertEqual(agents.hosts(), ["10.0.0.5"])

    def test_query_error_yields_empty_set(self) -> None:
        inventory = FakeInventory(error=requests.ConnectionError("no route"))
        self.assertEqual(DigitalOcean("token", transport=inventory).addresses("golo"), {})

    def test_bad_status_yields_empty_set(self) -> None:
        inventory = FakeInventory([droplet("a", v4=["10.0.0.5"])], status=401)
        self.assertEqual(DigitalOcean("token", transport=inventory).addresses("golo"), {})

    def test_default_transport_carries_bearer_token(self) -> None:
        lookup = DigitalOcean("secret")
        self.assertEqual(lookup.transport.session.headers["Authorization"], "Bearer secret")


class StaticLookupTest(unittest.TestCase):
    def test_known_and_unknown_tags(self) -> None:
        lookup = StaticLookup({"golo": ["10.0.0.2", "10.0.0.1", "10.0.0.1"]})
        self.assertEqual(lookup.addresses("golo").hosts(), ["10.0.0.1", "10.0.0.2"])
        self.assertEqual(lookup.addresses("other"), {})


class BuildLookupTest(unittest.TestCase):
    def test_static_provider(self) -> None:
        lookup = build_lookup(LookupConfig(provider="static", tags={"golo": ["h1"]}), {})
        self.assertIsInstance(lookup, StaticLookup)

    def test_digitalocean_reads_token_env(self) -> None:
        lookup = build_lookup(LookupConfig(token_env="MY_TOKEN"), {"MY_TOKEN": "abc"})
        self.assertIsInstance(lookup, DigitalOcean)

    def test_digitalocean_without_token(self) -> None:
        with self.assertRaises(MissingTokenError):
            build_lookup(LookupConfig(), {})


if __name__ == "__main__":
    unittest.main()
