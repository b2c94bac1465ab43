from __future__ import annotations


class DispatchError(RuntimeError):
    pass


class MissingHostError(DispatchError):
    def __init__(self) -> None:
        super().__init__("missing hostname")


class MissingTokenError(DispatchError):
    pass


class ResponseFormatError(DispatchError):
    pass


class AgentStatusError(DispatchError):
    def __init__(self, status: str, url: str, body: str = "") -> None:
        self.status = status
        self.url = url
        self.body = body
        detail = f"received {status!r} from {url}"
        if body:
            detail = f"{detail}, {body}"
        super().__init__(detail)


class QueueRejectedError(DispatchError):
    def __init__(self, body: str) -> None:
        self.body = body
        super().__init__(f"could not queue job, received: {body}")


class InventoryError(DispatchError):
    pass
