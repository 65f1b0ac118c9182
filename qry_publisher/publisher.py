from __future__ import annotations
from typing import Any, Callable, Iterable, Optional, Union
import logging

from .builder import EnvelopeBuilder, PointLike
from .challenge import HubEndpoint
from .codecs import UsageTable, format_stats_array, parse_stats_array
from .config import PublisherHooks, PublisherOptions
from .connection import ConnectionManager, ConnectionState
from .envelope import DATA_EVENT, METADATA_EVENT, Envelope, IndexerStatus, Timestamp
from .keys import InstanceKey, PublicKey
from .transport import TransportFactory

logger = logging.getLogger(__name__)

# malformed caller input; logged and dropped instead of raised
_BAD_INPUT = (TypeError, ValueError, KeyError, AttributeError)


class QRYPublisher:
    """
    Publishes instance telemetry to the QRY hub.

    All publish calls are fire-and-forget: without an open connection they
    log and return False, they never raise.

        pub = QRYPublisher(hub_url="hub.example.com", instance_private_key="PVT_K1_...")
        pub.connect()
        pub.publish_api_usage(5, "2024-01-01T00:00:00Z")
    """

    def __init__(self, options: Optional[PublisherOptions] = None, *,
                 transport_factory: Optional[TransportFactory] = None,
                 **kwargs: Any):
        if options is None:
            hooks = PublisherHooks(
                on_connect=kwargs.pop("on_connect", None),
                on_metadata_request=kwargs.pop("on_metadata_request", None),
                on_disconnect=kwargs.pop("on_disconnect", None),
                on_not_registered=kwargs.pop("on_not_registered", None),
            )
            options = PublisherOptions(hooks=hooks, **kwargs)
        elif kwargs:
            raise TypeError("pass either options or keyword arguments, not both")
        self.options = options

        key = InstanceKey.load(options.instance_private_key)
        endpoint = HubEndpoint.resolve(options.hub_url, options.use_tls, options.rest_prefix)
        if transport_factory is None:
            transport_factory = self._socketio_factory(options.reconnection_delay)

        self.connection = ConnectionManager(
            endpoint, key,
            socket_path=options.socket_path,
            hooks=options.hooks,
            metadata=options.metadata,
            transport_factory=transport_factory,
            http_timeout=options.http_timeout,
        )

    @staticmethod
    def _socketio_factory(delay: float) -> TransportFactory:
        def factory():
            from .transports.socketio import SocketIOTransport
            return SocketIOTransport(reconnection_delay=delay)
        return factory

    # ---- state ----
    @property
    def public_key(self) -> Optional[PublicKey]:
        return self.connection.public_key

    @property
    def session_token(self) -> Optional[str]:
        return self.connection.session_token

    @property
    def hooks(self) -> PublisherHooks:
        return self.connection.hooks

    @property
    def metadata(self) -> Any:
        return self.connection.metadata

    @metadata.setter
    def metadata(self, value: Any) -> None:
        self.connection.metadata = value

    @property
    def connected(self) -> bool:
        return self.connection.connected

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    # ---- lifecycle ----
    def connect(self) -> bool:
        return self.connection.connect()

    def close(self) -> None:
        self.connection.disconnect()

    # ---- publishing ----
    def publish(self, data: Union[Envelope, dict]) -> bool:
        """Send one envelope (or an already-shaped {type, data} dict) on instance-data."""
        if isinstance(data, Envelope):
            return self.connection.send(data)
        return self.connection.emit(DATA_EVENT, data)

    def send_metadata(self, data: Any) -> bool:
        return self.connection.emit(METADATA_EVENT, data)

    def publish_api_usage_map(self, table: UsageTable, from_ts: Optional[Timestamp] = None,
                              to_ts: Optional[Timestamp] = None) -> bool:
        return self._publish_built("api usage map",
                                   lambda: EnvelopeBuilder().api_usage_map(table, from_ts, to_ts).build())

    def publish_api_usage(self, counter: int, timestamp: Optional[Timestamp] = None) -> bool:
        return self._publish_built("api usage",
                                   lambda: EnvelopeBuilder().api_usage(counter, timestamp).build())

    def publish_past_api_usage(self, points: Iterable[PointLike]) -> bool:
        return self._publish_built("past api usage",
                                   lambda: EnvelopeBuilder().past_api_usage(points).build())

    def publish_indexer_status(self, status: Union[IndexerStatus, str]) -> bool:
        return self._publish_built("indexer status",
                                   lambda: EnvelopeBuilder().indexer_status(status).build())

    def _publish_built(self, what: str, build: Callable[[], Envelope]) -> bool:
        try:
            env = build()
        except _BAD_INPUT as e:
            logger.error("Not publishing %s: %s", what, e)
            return False
        logger.debug("Publishing %s", what)
        return self.publish(env)

    # wire helpers
    format_stats_array = staticmethod(format_stats_array)
    parse_stats_array = staticmethod(parse_stats_array)
