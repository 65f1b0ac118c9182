from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional
import logging, os

from .errors import ConfigError

logger = logging.getLogger(__name__)

Hook = Callable[..., Any]

DEFAULT_PUBLISH_PATH = "/ws/providers/"
DEFAULT_RECONNECTION_DELAY = 3.0
DEFAULT_HTTP_TIMEOUT = 10.0

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class PublisherHooks:
    """Optional lifecycle callbacks. Empty slots are skipped."""
    on_connect: Optional[Hook] = None
    on_metadata_request: Optional[Hook] = None
    on_disconnect: Optional[Hook] = None
    on_not_registered: Optional[Hook] = None

    def fire(self, name: str, *args: Any) -> None:
        hook = getattr(self, name, None)
        if not callable(hook):
            return
        try:
            hook(*args)
        except Exception:
            # hooks run on the socket's event thread; never let them kill it
            logger.exception("Hook %s raised", name)


@dataclass
class PublisherOptions:
    hub_url: str
    instance_private_key: Optional[str] = None
    metadata: Any = None
    publish_path: Optional[str] = None          # socket.io path prefix
    use_tls: Optional[bool] = None              # None -> from hub_url scheme, else True
    rest_prefix: Optional[str] = None           # None -> "/ws/providers" with TLS, "" without
    reconnection_delay: float = DEFAULT_RECONNECTION_DELAY
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    hooks: PublisherHooks = field(default_factory=PublisherHooks)

    def __post_init__(self):
        if not self.hub_url:
            raise ConfigError("hub_url is required")

    @classmethod
    def from_env(cls, prefix: str = "QRY_", env: Optional[Mapping[str, str]] = None,
                 **overrides: Any) -> "PublisherOptions":
        """
        Build options from environment variables:
          QRY_HUB_URL, QRY_INSTANCE_PRIVATE_KEY, QRY_PUBLISH_PATH,
          QRY_USE_TLS, QRY_HTTP_TIMEOUT
        Keyword overrides win over the environment.
        """
        env = os.environ if env is None else env
        kwargs: dict = {
            "hub_url": env.get(prefix + "HUB_URL", ""),
            "instance_private_key": env.get(prefix + "INSTANCE_PRIVATE_KEY") or None,
            "publish_path": env.get(prefix + "PUBLISH_PATH") or None,
            "use_tls": _parse_bool(env.get(prefix + "USE_TLS"), prefix + "USE_TLS"),
        }
        timeout = env.get(prefix + "HTTP_TIMEOUT")
        if timeout:
            try:
                kwargs["http_timeout"] = float(timeout)
            except ValueError:
                raise ConfigError(f"{prefix}HTTP_TIMEOUT must be a number, got {timeout!r}") from None
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def socket_path(self) -> str:
        return (self.publish_path or DEFAULT_PUBLISH_PATH) + "socket.io"


def _parse_bool(value: Optional[str], name: str) -> Optional[bool]:
    if value is None or value == "":
        return None
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")
