from __future__ import annotations

from typing import Protocol

import requests


class Transport(Protocol):
    def execute(self, request: requests.Request) -> requests.Response: ...


class RequestsTransport:
    """Sends requests through a shared session, optionally as a bearer token holder.

    Connection failures and timeouts surface as ``requests.RequestException``;
    status codes are left for the caller to interpret.
    """

    def __init__(
        self,
        token: str | None = None,
        timeout_seconds: float = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.timeout_seconds = timeout_seconds
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def execute(self, request: requests.Request) -> requests.Response:
        prepared = self.session.prepare_request(request)
        return self.session.send(prepared, timeout=self.timeout_seconds)

    def close(self) -> None:
        self.session.close()


def status_text(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".strip()
