from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

EventHandler = Callable[..., Any]
AuthProvider = Callable[[], Optional[Dict[str, Any]]]

class Transport(ABC):
    """One real-time connection to the hub. Reconnection is the transport's job."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def connect(self, url: str, *, path: str, auth: Optional[AuthProvider] = None) -> None:
        """Open the connection. `auth` is called at handshake time; None -> anonymous."""
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def emit(self, event: str, data: Any) -> None:
        """One-way send, no acknowledgement."""
        raise NotImplementedError

    @abstractmethod
    def on(self, event: str, handler: EventHandler) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear_handlers(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        # detach first so teardown events don't reach stale handlers
        self.clear_handlers()
        self.disconnect()

TransportFactory = Callable[[], Transport]
