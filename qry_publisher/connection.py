from __future__ import annotations
from enum import StrEnum
from typing import Any, Dict, Optional
import logging, threading

from .builder import EnvelopeBuilder
from .challenge import ChallengeExchange, HubEndpoint, HubSession
from .config import DEFAULT_HTTP_TIMEOUT, DEFAULT_PUBLISH_PATH, PublisherHooks
from .envelope import Envelope
from .errors import AuthenticationError, InstanceNotRegisteredError, TransportError
from .keys import InstanceKey, PublicKey
from .transport import Transport, TransportFactory
from .wire import Control, is_not_registered, pack_envelope, unpack_control

logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    CONNECTING    = "connecting"
    CONNECTED     = "connected"
    DISCONNECTED  = "disconnected"


def _default_transport_factory() -> Transport:
    from .transports.socketio import SocketIOTransport
    return SocketIOTransport()


class ConnectionManager:

    # Notes:
    # - One transport handle at a time; connect() builds a new one and closes the old
    # - With a key, every connect() runs a fresh challenge/session exchange first
    # - Without a key the socket is opened anonymously (no auth payload, no HTTP)
    # - Event handlers run on the transport's threads; the handle is swapped under a lock
    # - A failed re-authentication also drops the previous handle (its token is gone)

    def __init__(self, endpoint: HubEndpoint, key: Optional[InstanceKey] = None, *,
                 socket_path: str = DEFAULT_PUBLISH_PATH + "socket.io",
                 hooks: Optional[PublisherHooks] = None,
                 metadata: Any = None,
                 transport_factory: Optional[TransportFactory] = None,
                 exchange: Optional[ChallengeExchange] = None,
                 http_timeout: float = DEFAULT_HTTP_TIMEOUT):
        self.endpoint = endpoint
        self.key = key
        self.socket_path = socket_path
        self.hooks = hooks or PublisherHooks()
        self.metadata = metadata
        self.transport_factory = transport_factory or _default_transport_factory
        if exchange is None and key is not None:
            exchange = ChallengeExchange(endpoint, key, timeout=http_timeout)
        self.exchange = exchange

        self.session: Optional[HubSession] = None
        self.state = ConnectionState.UNINITIALIZED
        self.last_error: Optional[Exception] = None

        self._transport: Optional[Transport] = None
        self._lock = threading.Lock()

    @property
    def public_key(self) -> Optional[PublicKey]:
        return self.key.public_key if self.key else None

    @property
    def session_token(self) -> Optional[str]:
        return self.session.token if self.session else None

    @property
    def transport(self) -> Optional[Transport]:
        with self._lock:
            return self._transport

    @property
    def connected(self) -> bool:
        t = self.transport
        return t is not None and t.connected

    def connect(self) -> bool:
        """
        (Re)connect from scratch. Returns True if a transport connection
        was opened. Never raises; failures are logged and kept in last_error.
        """
        self.state = ConnectionState.CONNECTING
        self.last_error = None
        self.session = None

        if self.key is not None:
            try:
                self.session = self.exchange.authenticate()
            except InstanceNotRegisteredError as e:
                self._swap(None)
                self._not_registered(e)
                return False
            except AuthenticationError as e:
                logger.warning("Failed to authenticate with hub: %s", e)
                self._swap(None)
                self._failed(e)
                return False

        url = self.endpoint.base_url
        logger.info("Connecting to %s with path %s", url, self.socket_path)

        transport = self.transport_factory()
        self._attach(transport)
        self._swap(transport)
        try:
            transport.connect(url, path=self.socket_path,
                              auth=self._auth_payload if self.key else None)
        except TransportError as e:
            self._swap(None)
            if isinstance(self.last_error, InstanceNotRegisteredError):
                # already reported by the connect_error handler
                self.state = ConnectionState.DISCONNECTED
                return False
            logger.error("Connection to hub failed: %s", e)
            self._failed(e)
            return False
        return True

    def disconnect(self) -> None:
        self._swap(None)
        self.state = ConnectionState.DISCONNECTED

    def emit(self, event: str, data: Any) -> bool:
        t = self.transport
        if t is None or not t.connected:
            logger.error("Socket not connected, dropping %s", event)
            return False
        try:
            t.emit(event, data)
        except TransportError as e:
            logger.error("Failed to emit %s: %s", event, e)
            return False
        return True

    def send(self, env: Envelope) -> bool:
        event, payload = pack_envelope(env)
        return self.emit(event, payload)

    # ---- internals ----
    def _auth_payload(self) -> Dict[str, Any]:
        return {"publicKey": self.key.identity_string(), "token": self.session_token}

    def _swap(self, new: Optional[Transport]) -> None:
        with self._lock:
            old, self._transport = self._transport, new
        if old is not None and old is not new:
            old.close()

    def _failed(self, error: Exception) -> None:
        self.last_error = error
        self.state = ConnectionState.DISCONNECTED

    def _not_registered(self, error: InstanceNotRegisteredError) -> None:
        logger.error("Instance not registered with hub (public key %s)", error.public_key or "?")
        self._failed(error)
        self.hooks.fire("on_not_registered", error)

    def _attach(self, t: Transport) -> None:
        t.on("connect", self._on_connect)
        t.on("message", self._on_message)
        t.on("disconnect", self._on_disconnect)
        t.on("error", self._on_error)
        t.on("connect_error", self._on_error)

    def _on_connect(self, *args: Any) -> None:
        logger.info("Connected to hub %s", self.endpoint.host)
        self.state = ConnectionState.CONNECTED
        self.hooks.fire("on_connect")

    def _on_message(self, *args: Any) -> None:
        msg = args[0] if args else None
        control = unpack_control(msg)
        if control is Control.METADATA_REQUEST:
            if self.metadata:
                self.send(EnvelopeBuilder().metadata(self.metadata).build())
            self.hooks.fire("on_metadata_request")
            return
        logger.debug("Ignoring message from hub: %r", msg)

    def _on_disconnect(self, *args: Any) -> None:
        reason = args[0] if args else None
        logger.info("Disconnected from hub (%s)", reason or "unknown reason")
        self.state = ConnectionState.DISCONNECTED
        self.hooks.fire("on_disconnect")

    def _on_error(self, *args: Any) -> None:
        data = args[0] if args else None
        if is_not_registered(data):
            public_key = self.key.identity_string() if self.key else ""
            self._not_registered(InstanceNotRegisteredError(public_key))
            return
        logger.error("Socket error: %s", data)
        self.last_error = TransportError(str(data))
