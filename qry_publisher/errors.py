from __future__ import annotations


class PublisherError(Exception):
    """Base class for everything raised inside qry_publisher."""


class ConfigError(PublisherError):
    pass


class KeyFormatError(PublisherError, ValueError):
    pass


class AuthenticationError(PublisherError):
    pass


class ChallengeError(AuthenticationError):
    pass


class InstanceNotRegisteredError(ChallengeError):
    """The hub does not know this instance's public key."""

    def __init__(self, public_key: str = ""):
        self.public_key = public_key
        msg = "Instance not registered"
        if public_key:
            msg = f"{msg}: {public_key}"
        super().__init__(msg)


class SessionError(AuthenticationError):
    pass


class TransportError(PublisherError):
    pass
