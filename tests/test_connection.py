"""Tests for the connection lifecycle: auth paths, control messages, hooks."""
import logging

import pytest

from qry_publisher.challenge import ChallengeExchange, HubEndpoint
from qry_publisher.config import PublisherHooks
from qry_publisher.connection import ConnectionManager, ConnectionState
from qry_publisher.envelope import Envelope, EnvelopeType
from qry_publisher.errors import ChallengeError, InstanceNotRegisteredError, TransportError

from conftest import FakeHTTP, FakeResponse, FakeTransport


ENDPOINT = HubEndpoint.resolve("hub.example.com")


class Recorder:
    def __init__(self):
        self.calls = []

    def hook(self, name):
        def _h(*args):
            self.calls.append((name, args))
        return _h

    def hooks(self):
        return PublisherHooks(
            on_connect=self.hook("connect"),
            on_metadata_request=self.hook("metadata_request"),
            on_disconnect=self.hook("disconnect"),
            on_not_registered=self.hook("not_registered"),
        )

    @property
    def names(self):
        return [n for n, _ in self.calls]


def manager(key=None, http=None, transport_factory=None, **kwargs):
    exchange = ChallengeExchange(ENDPOINT, key, http=http) if key is not None else None
    return ConnectionManager(ENDPOINT, key, exchange=exchange,
                             transport_factory=transport_factory, **kwargs)


# ── Auth paths ──────────────────────────────────────────────────────


def test_anonymous_connect_skips_http(transports, transport_factory):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks())

    assert cm.connect()
    assert cm.exchange is None
    t = transports[0]
    assert t.connect_calls[0]["auth"] is None
    assert t.connect_calls[0]["url"] == "https://hub.example.com"
    assert t.connect_calls[0]["path"] == "/ws/providers/socket.io"
    assert cm.state is ConnectionState.CONNECTED
    assert cm.session_token is None
    assert rec.names == ["connect"]


def test_authenticated_connect_presents_token(key, transports, transport_factory):
    http = FakeHTTP(challenge=FakeResponse(200, "c1"), session=FakeResponse(200, "t1"))
    cm = manager(key, http, transport_factory)

    assert cm.connect()
    assert cm.session_token == "t1"
    assert transports[0].auth_payload == {"publicKey": key.identity_string(), "token": "t1"}


def test_challenge_failure_opens_nothing(key, transports, transport_factory, caplog):
    http = FakeHTTP(challenge=FakeResponse(500, "internal"))
    cm = manager(key, http, transport_factory)

    with caplog.at_level(logging.WARNING, logger="qry_publisher.connection"):
        assert cm.connect() is False
    assert transports == []
    assert cm.session_token is None
    assert cm.transport is None
    assert isinstance(cm.last_error, ChallengeError)
    assert cm.state is ConnectionState.DISCONNECTED
    assert "Failed to authenticate" in caplog.text


def test_not_registered_stops_before_session(key, transports, transport_factory, caplog):
    rec = Recorder()
    http = FakeHTTP(challenge=FakeResponse(404, "INSTANCE_NOT_REGISTERED"), session=FakeResponse(200, "t1"))
    cm = manager(key, http, transport_factory, hooks=rec.hooks())

    with caplog.at_level(logging.ERROR, logger="qry_publisher.connection"):
        assert cm.connect() is False
    assert len(http.calls) == 1
    assert transports == []
    assert isinstance(cm.last_error, InstanceNotRegisteredError)
    assert rec.names == ["not_registered"]
    assert "Instance not registered" in caplog.text


def test_session_failure_keeps_no_token(key, transports, transport_factory):
    http = FakeHTTP(challenge=FakeResponse(200, "c1"), session=FakeResponse(401, "denied"))
    cm = manager(key, http, transport_factory)

    assert cm.connect() is False
    assert cm.session_token is None
    assert transports == []


def test_each_connect_runs_a_fresh_exchange(key, transports, transport_factory):
    http = FakeHTTP(challenge=FakeResponse(200, "c1"), session=FakeResponse(200, "t1"))
    cm = manager(key, http, transport_factory)
    cm.connect()
    http.routes["session"] = FakeResponse(200, "t2")
    cm.connect()

    assert len(http.calls) == 4
    assert transports[1].auth_payload["token"] == "t2"


def test_transport_failure_leaves_no_handle(transports):
    def failing():
        t = FakeTransport(fail=True)
        transports.append(t)
        return t

    cm = manager(transport_factory=failing)
    assert cm.connect() is False
    assert cm.transport is None
    assert transports[0].closed
    assert isinstance(cm.last_error, TransportError)


# ── Handle replacement ──────────────────────────────────────────────


def test_reconnect_closes_previous_transport(transports, transport_factory):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks())
    cm.connect()
    cm.connect()

    old, new = transports
    assert old.closed and old.handlers == {}
    assert not old.connected
    assert cm.transport is new
    # old transport detached before disconnect, so no disconnect hook
    assert rec.names == ["connect", "connect"]


def test_disconnect_drops_handle(transports, transport_factory):
    cm = manager(transport_factory=transport_factory)
    cm.connect()
    cm.disconnect()
    assert cm.transport is None
    assert not cm.connected
    assert cm.state is ConnectionState.DISCONNECTED


# ── Inbound events ──────────────────────────────────────────────────


def test_metadata_request_sends_metadata_then_hook(transports, transport_factory):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks(), metadata={"chain": "wax"})
    cm.connect()
    transports[0].fire("message", "metadata-request")

    assert transports[0].emitted == [("instance-metadata", {"chain": "wax"})]
    assert rec.names == ["connect", "metadata_request"]


def test_metadata_request_without_metadata_only_hooks(transports, transport_factory):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks())
    cm.connect()
    transports[0].fire("message", "metadata-request")

    assert transports[0].emitted == []
    assert rec.names == ["connect", "metadata_request"]


def test_unknown_messages_are_ignored(transports, transport_factory):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks(), metadata={"a": 1})
    cm.connect()
    transports[0].fire("message", "reboot-now")
    transports[0].fire("message", {"type": "metadata-request"})

    assert transports[0].emitted == []
    assert rec.names == ["connect"]


def test_disconnect_event_fires_hook(transports, transport_factory):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks())
    cm.connect()
    transports[0].fire("disconnect", "transport close")

    assert rec.names == ["connect", "disconnect"]
    assert cm.state is ConnectionState.DISCONNECTED


@pytest.mark.parametrize("event,payload", [
    ("error", "INSTANCE_NOT_REGISTERED"),
    ("connect_error", {"message": "INSTANCE_NOT_REGISTERED"}),
])
def test_socket_not_registered_signal(key, transports, transport_factory, event, payload):
    rec = Recorder()
    http = FakeHTTP(challenge=FakeResponse(200, "c1"), session=FakeResponse(200, "t1"))
    cm = manager(key, http, transport_factory, hooks=rec.hooks())
    cm.connect()
    transports[0].fire(event, payload)

    assert rec.names == ["connect", "not_registered"]
    err = rec.calls[-1][1][0]
    assert isinstance(err, InstanceNotRegisteredError)
    assert err.public_key == key.identity_string()


def test_generic_socket_error_is_logged(transports, transport_factory, caplog):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks())
    cm.connect()
    with caplog.at_level(logging.ERROR, logger="qry_publisher.connection"):
        transports[0].fire("error", "ping timeout")

    assert rec.names == ["connect"]
    assert isinstance(cm.last_error, TransportError)
    assert "ping timeout" in caplog.text


def test_hook_exceptions_do_not_escape(transports, transport_factory, caplog):
    def broken():
        raise RuntimeError("hook bug")

    cm = manager(transport_factory=transport_factory, hooks=PublisherHooks(on_connect=broken))
    with caplog.at_level(logging.ERROR):
        assert cm.connect()
    assert "on_connect raised" in caplog.text


# ── Emission ────────────────────────────────────────────────────────


def test_send_requires_open_connection(transports, transport_factory, caplog):
    cm = manager(transport_factory=transport_factory)
    env = Envelope(EnvelopeType.API_USAGE, {"counter": 1})
    with caplog.at_level(logging.ERROR):
        assert cm.send(env) is False
    assert "Socket not connected" in caplog.text

    cm.connect()
    assert cm.send(env)
    assert transports[0].emitted == [("instance-data", {"type": "api_usage", "data": {"counter": 1}})]


def test_emit_after_transport_drop_is_a_noop(transports, transport_factory):
    cm = manager(transport_factory=transport_factory)
    cm.connect()
    transports[0]._connected = False
    assert cm.emit("instance-data", {}) is False
    assert transports[0].emitted == []


def test_handshake_rejection_stays_not_registered(key, transports, caplog):
    rec = Recorder()
    http = FakeHTTP(challenge=FakeResponse(200, "c1"), session=FakeResponse(200, "t1"))

    def rejecting():
        t = FakeTransport(reject_with={"message": "INSTANCE_NOT_REGISTERED"})
        transports.append(t)
        return t

    cm = manager(key, http, rejecting, hooks=rec.hooks())
    with caplog.at_level(logging.ERROR, logger="qry_publisher.connection"):
        assert cm.connect() is False

    assert isinstance(cm.last_error, InstanceNotRegisteredError)
    assert rec.names == ["not_registered"]
    assert cm.transport is None
    assert cm.state is ConnectionState.DISCONNECTED
    assert "Instance not registered" in caplog.text
    assert "Connection to hub failed" not in caplog.text


def test_failed_reauthentication_drops_previous_handle(key, transports, transport_factory):
    http = FakeHTTP(challenge=FakeResponse(200, "c1"), session=FakeResponse(200, "t1"))
    cm = manager(key, http, transport_factory)
    assert cm.connect()

    http.routes["challenge"] = FakeResponse(503, "maintenance")
    assert cm.connect() is False

    assert transports[0].closed
    assert cm.transport is None
    assert not cm.connected
    assert cm.state is ConnectionState.DISCONNECTED
    assert cm.session_token is None


def test_message_event_with_extra_arguments(transports, transport_factory):
    rec = Recorder()
    cm = manager(transport_factory=transport_factory, hooks=rec.hooks(), metadata={"a": 1})
    cm.connect()
    transports[0].fire("message", "metadata-request", {"extra": True})
    transports[0].fire("message")

    assert transports[0].emitted == [("instance-metadata", {"a": 1})]
    assert rec.names == ["connect", "metadata_request"]
