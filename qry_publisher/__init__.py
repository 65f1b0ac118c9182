"""
Public API:
- QRYPublisher: facade (connect, publish, send_metadata, publish_api_usage*, publish_indexer_status)
- create_publisher: one-liner factory
- ConnectionManager: challenge/session auth + socket lifecycle + control messages
- ChallengeExchange, HubEndpoint: the two REST calls that yield a session token
- InstanceKey, PublicKey, Signature: instance credentials (Antelope key formats)
- Envelope, EnvelopeBuilder, EnvelopeType, IndexerStatus, UsagePoint: outbound wire types
- Transport: abstract class transports must implement
- PublisherOptions, PublisherHooks: configuration
- format_stats_array, parse_stats_array: usage table encoding
"""

# Facade
from .publisher import QRYPublisher
from .factory import create_publisher

# Connection & auth
from .connection import ConnectionManager, ConnectionState
from .challenge import ChallengeExchange, HubEndpoint, HubSession
from .keys import InstanceKey, PublicKey, Signature

# Wire types
from .builder import EnvelopeBuilder
from .envelope import Envelope, EnvelopeType, IndexerStatus, UsagePoint
from .codecs import format_stats_array, parse_stats_array

# Transport contract
from .transport import Transport

# Config & errors
from .config import PublisherHooks, PublisherOptions
from .errors import (
    AuthenticationError,
    ChallengeError,
    ConfigError,
    InstanceNotRegisteredError,
    KeyFormatError,
    PublisherError,
    SessionError,
    TransportError,
)

__all__ = [
    "QRYPublisher",
    "create_publisher",
    "ConnectionManager",
    "ConnectionState",
    "ChallengeExchange",
    "HubEndpoint",
    "HubSession",
    "InstanceKey",
    "PublicKey",
    "Signature",
    "EnvelopeBuilder",
    "Envelope",
    "EnvelopeType",
    "IndexerStatus",
    "UsagePoint",
    "format_stats_array",
    "parse_stats_array",
    "Transport",
    "PublisherHooks",
    "PublisherOptions",
    "AuthenticationError",
    "ChallengeError",
    "ConfigError",
    "InstanceNotRegisteredError",
    "KeyFormatError",
    "PublisherError",
    "SessionError",
    "TransportError",
]

__version__ = "0.1.0"
