from __future__ import annotations
from typing import Any, Optional
import logging

import socketio
from socketio.exceptions import SocketIOError

from ..errors import TransportError
from ..transport import AuthProvider, EventHandler, Transport

logger = logging.getLogger(__name__)

class SocketIOTransport(Transport):
    """Transport over a socket.io client.

    Mapping:
    - websocket transport only, no long-polling fallback
    - reconnection with a fixed delay (no backoff, no jitter, unlimited attempts)
    - auth provider -> socket.io handshake `auth` (called on every (re)connect)
    - the initial connect retries too (`retry=True`): connect() blocks until the
      hub accepts the socket, and close() from another thread aborts the wait

    """

    def __init__(self, *, reconnection_delay: float = 3.0, **client_kwargs: Any):
        self.client = socketio.Client(
            reconnection=True,
            reconnection_delay=reconnection_delay,
            reconnection_delay_max=reconnection_delay,
            randomization_factor=0,
            **client_kwargs,
        )

    @property
    def connected(self) -> bool:
        return bool(self.client.connected)

    def connect(self, url: str, *, path: str, auth: Optional[AuthProvider] = None) -> None:
        try:
            self.client.connect(
                url,
                socketio_path=path,
                transports=["websocket"],
                auth=auth,
                retry=True,
            )
        except SocketIOError as e:
            raise TransportError(f"could not connect to {url}: {e}") from e

    def disconnect(self) -> None:
        try:
            # shutdown() also aborts a running reconnect loop, disconnect() does not
            self.client.shutdown()
        except SocketIOError as e:
            logger.debug("Ignoring error during disconnect: %s", e)

    def emit(self, event: str, data: Any) -> None:
        try:
            self.client.emit(event, data)
        except SocketIOError as e:
            raise TransportError(f"emit {event!r} failed: {e}") from e

    def on(self, event: str, handler: EventHandler) -> None:
        self.client.on(event, handler)

    def clear_handlers(self) -> None:
        self.client.handlers.clear()
