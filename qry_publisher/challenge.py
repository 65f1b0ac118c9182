from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlsplit
import logging

import requests

from .envelope import NOT_REGISTERED
from .errors import ChallengeError, InstanceNotRegisteredError, SessionError
from .keys import InstanceKey

logger = logging.getLogger(__name__)

DEFAULT_REST_PREFIX = "/ws/providers"

KEY_HEADER = "X-Instance-Key"
SIGNATURE_HEADER = "X-Signature"


@dataclass(frozen=True)
class HubEndpoint:
    """Where the hub lives and which scheme both REST and socket use."""
    host: str
    use_tls: bool = True
    rest_prefix: str = DEFAULT_REST_PREFIX

    @classmethod
    def resolve(cls, hub_url: str, use_tls: Optional[bool] = None,
                rest_prefix: Optional[str] = None) -> "HubEndpoint":
        parts = urlsplit(hub_url if "://" in hub_url else "//" + hub_url)
        host = parts.netloc + parts.path.rstrip("/")
        if use_tls is None:
            use_tls = parts.scheme not in ("http", "ws")
        if rest_prefix is None:
            rest_prefix = DEFAULT_REST_PREFIX if use_tls else ""
        return cls(host=host, use_tls=use_tls, rest_prefix=rest_prefix.rstrip("/"))

    @property
    def base_url(self) -> str:
        return f"{'https' if self.use_tls else 'http'}://{self.host}"

    def rest_url(self, name: str) -> str:
        return f"{self.base_url}{self.rest_prefix}/{name}"


@dataclass(frozen=True)
class HubSession:
    token: str


class ChallengeExchange:
    """
    Two sequential GETs that trade a signed challenge for a session token:
      1. /challenge  (X-Instance-Key)                -> challenge text
      2. /session    (X-Instance-Key, X-Signature)   -> session token
    No retries; a failure aborts the current connect attempt.
    """

    def __init__(self, endpoint: HubEndpoint, key: InstanceKey, *,
                 timeout: float = 10.0, http: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.key = key
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {"Content-Type": "text/plain", KEY_HEADER: self.key.identity_string()}
        headers.update(extra)
        return headers

    def request_challenge(self) -> str:
        url = self.endpoint.rest_url("challenge")
        try:
            resp = self.http.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise ChallengeError(f"challenge request failed: {e}") from e

        if resp.status_code != 200:
            if resp.text == NOT_REGISTERED:
                raise InstanceNotRegisteredError(self.key.identity_string())
            raise ChallengeError(f"hub returned {resp.status_code}: {resp.text}")
        if not resp.text:
            raise ChallengeError("hub returned an empty challenge")
        return resp.text

    def request_session(self, challenge: str) -> str:
        signature = self.key.sign(challenge)
        url = self.endpoint.rest_url("session")
        headers = self._headers(**{SIGNATURE_HEADER: signature.to_string()})
        try:
            resp = self.http.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise SessionError(f"session request failed: {e}") from e

        if resp.status_code != 200:
            raise SessionError(f"hub returned {resp.status_code}: {resp.text}")
        if not resp.text:
            raise SessionError("hub returned an empty session token")
        return resp.text

    def authenticate(self) -> HubSession:
        challenge = self.request_challenge()
        logger.debug("Received challenge from %s", self.endpoint.host)
        return HubSession(self.request_session(challenge))
