from __future__ import annotations
from typing import Any, Dict, List, Optional

import pytest
import requests

from qry_publisher.errors import TransportError
from qry_publisher.keys import InstanceKey
from qry_publisher.transport import Transport

# Well-known development key pair
DEV_WIF = "5KQwrPbwdL6PhXujxW37FSSQZ1JiwsST4cqQzDeyXtP79zkvFD3"
DEV_PUB_LEGACY = "EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV"


class FakeTransport(Transport):
    """In-process transport: records emits, lets tests fire inbound events."""

    def __init__(self, fail: bool = False, reject_with: Any = None):
        self.fail = fail
        self.reject_with = reject_with   # connect_error payload fired before failing
        self.handlers: Dict[str, Any] = {}
        self.emitted: List[tuple] = []
        self.connect_calls: List[dict] = []
        self.closed = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self, url, *, path, auth=None):
        self.connect_calls.append({"url": url, "path": path, "auth": auth})
        if self.reject_with is not None:
            self.fire("connect_error", self.reject_with)
            raise TransportError("One or more namespaces failed to connect")
        if self.fail:
            raise TransportError("connection refused")
        self._connected = True
        self.fire("connect")

    def disconnect(self):
        was = self._connected
        self._connected = False
        if was:
            self.fire("disconnect", "io client disconnect")

    def emit(self, event, data):
        self.emitted.append((event, data))

    def on(self, event, handler):
        self.handlers[event] = handler

    def clear_handlers(self):
        self.handlers.clear()

    def close(self):
        self.closed = True
        super().close()

    def fire(self, event: str, *args: Any) -> None:
        handler = self.handlers.get(event)
        if handler:
            handler(*args)

    @property
    def auth_payload(self) -> Optional[dict]:
        auth = self.connect_calls[-1]["auth"]
        return auth() if auth else None


class FakeResponse:
    def __init__(self, status_code: int, text: str):
        self.status_code = status_code
        self.text = text


class FakeHTTP:
    """Stands in for requests.Session; routes by the last path segment."""

    def __init__(self, **routes):
        self.routes = routes      # "challenge" -> FakeResponse | Exception
        self.calls: List[dict] = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": dict(headers or {}), "timeout": timeout})
        result = self.routes.get(url.rsplit("/", 1)[-1])
        if result is None:
            raise requests.ConnectionError(f"no route for {url}")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def key() -> InstanceKey:
    return InstanceKey.from_string(DEV_WIF)


@pytest.fixture
def transports() -> List[FakeTransport]:
    return []


@pytest.fixture
def transport_factory(transports):
    def factory():
        t = FakeTransport()
        transports.append(t)
        return t
    return factory
