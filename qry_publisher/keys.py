from __future__ import annotations
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, Optional, Union
import hashlib, itertools, logging, secrets

import base58
from Crypto.Hash import RIPEMD160
from ecdsa import NIST256p, SECP256k1, SigningKey, VerifyingKey
from ecdsa.curves import Curve
from ecdsa.keys import BadSignatureError
from ecdsa.util import sigdecode_string, sigencode_strings_canonize

from .errors import KeyFormatError

logger = logging.getLogger(__name__)

# Antelope key type tag -> curve
CURVES: Dict[str, Curve] = {"K1": SECP256k1, "R1": NIST256p}

LEGACY_PREFIX = "EOS"
_WIF_VERSION = 0x80

Message = Union[str, bytes]


def _ripemd160(data: bytes) -> bytes:
    return RIPEMD160.new(data).digest()

def _digest(message: Message) -> bytes:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hashlib.sha256(message).digest()

def _b58decode(text: str) -> bytes:
    try:
        return base58.b58decode(text)
    except ValueError as e:
        raise KeyFormatError(f"invalid base58 data: {e}") from e

def _encode_checked(data: bytes, tag: str = "") -> str:
    check = _ripemd160(data + tag.encode("ascii"))[:4]
    return base58.b58encode(data + check).decode("ascii")

def _decode_checked(text: str, tag: str = "") -> bytes:
    raw = _b58decode(text)
    if len(raw) <= 4:
        raise KeyFormatError("encoded data too short")
    data, check = raw[:-4], raw[-4:]
    if _ripemd160(data + tag.encode("ascii"))[:4] != check:
        raise KeyFormatError("checksum mismatch")
    return data

def _split_tagged(text: str, kind: str) -> tuple[str, str]:
    """'PUB_K1_abc' -> ('K1', 'abc')"""
    parts = text.split("_", 2)
    if len(parts) != 3 or parts[0] != kind:
        raise KeyFormatError(f"expected {kind}_<type>_<data>")
    curve, body = parts[1], parts[2]
    if curve not in CURVES:
        raise KeyFormatError(f"unsupported key type: {curve}")
    return curve, body

def _is_canonical(r: bytes, s: bytes) -> bool:
    # neither value may need a leading sign byte in DER form
    return (
        not (r[0] & 0x80)
        and not (r[0] == 0 and not (r[1] & 0x80))
        and not (s[0] & 0x80)
        and not (s[0] == 0 and not (s[1] & 0x80))
    )


@dataclass(frozen=True)
class PublicKey:
    curve: str      # "K1" | "R1"
    data: bytes     # 33 byte compressed point

    @classmethod
    def from_string(cls, text: str) -> "PublicKey":
        text = text.strip()
        if text.startswith("PUB_"):
            curve, body = _split_tagged(text, "PUB")
            data = _decode_checked(body, curve)
        elif text.startswith(LEGACY_PREFIX):
            curve = "K1"
            data = _decode_checked(text[len(LEGACY_PREFIX):])
        else:
            raise KeyFormatError("unrecognised public key format")
        if len(data) != 33:
            raise KeyFormatError("public key must be 33 bytes")
        return cls(curve, data)

    @classmethod
    def from_verifying_key(cls, curve: str, vk: VerifyingKey) -> "PublicKey":
        return cls(curve, vk.to_string("compressed"))

    @property
    def verifying_key(self) -> VerifyingKey:
        return VerifyingKey.from_string(self.data, curve=CURVES[self.curve])

    def to_string(self) -> str:
        return f"PUB_{self.curve}_{_encode_checked(self.data, self.curve)}"

    def to_legacy_string(self, prefix: str = LEGACY_PREFIX) -> str:
        if self.curve != "K1":
            raise KeyFormatError("legacy format only exists for K1 keys")
        return prefix + _encode_checked(self.data)

    def verify(self, message: Message, signature: "Signature") -> bool:
        if signature.curve != self.curve:
            return False
        try:
            return self.verifying_key.verify_digest(
                signature.r + signature.s, _digest(message), sigdecode=sigdecode_string
            )
        except BadSignatureError:
            return False

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class Signature:
    curve: str
    recid: int
    r: bytes
    s: bytes

    @classmethod
    def from_string(cls, text: str) -> "Signature":
        curve, body = _split_tagged(text.strip(), "SIG")
        data = _decode_checked(body, curve)
        if len(data) != 65:
            raise KeyFormatError("signature must be 65 bytes")
        return cls(curve, data[0] - 31, data[1:33], data[33:])

    def to_bytes(self) -> bytes:
        return bytes([self.recid + 31]) + self.r + self.s

    def to_string(self) -> str:
        return f"SIG_{self.curve}_{_encode_checked(self.to_bytes(), self.curve)}"

    def recover(self, message: Message) -> PublicKey:
        """Recover the signer's public key from the signature and message."""
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            self.r + self.s, _digest(message), CURVES[self.curve],
            hashfunc=hashlib.sha256, sigdecode=sigdecode_string,
        )
        if not 0 <= self.recid < len(candidates):
            raise KeyFormatError(f"invalid recovery id: {self.recid}")
        return PublicKey.from_verifying_key(self.curve, candidates[self.recid])

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class InstanceKey:
    """
    Private signing key of an instance plus its derived public identity.
    Accepts PVT_K1_/PVT_R1_ strings and legacy WIF.
    """
    curve: str
    secret: bytes = field(repr=False)

    def __post_init__(self):
        if self.curve not in CURVES:
            raise KeyFormatError(f"unsupported key type: {self.curve}")
        if len(self.secret) != 32:
            raise KeyFormatError("private key must be 32 bytes")
        exp = int.from_bytes(self.secret, "big")
        if not 0 < exp < CURVES[self.curve].order:
            raise KeyFormatError("private key out of range")

    @classmethod
    def from_string(cls, text: str) -> "InstanceKey":
        text = text.strip()
        if text.startswith("PVT_"):
            curve, body = _split_tagged(text, "PVT")
            return cls(curve, _decode_checked(body, curve))

        raw = _b58decode(text)
        if len(raw) != 37 or raw[0] != _WIF_VERSION:
            raise KeyFormatError("unrecognised private key format")
        check = hashlib.sha256(hashlib.sha256(raw[:33]).digest()).digest()[:4]
        if check != raw[33:]:
            raise KeyFormatError("checksum mismatch")
        return cls("K1", raw[1:33])

    @classmethod
    def load(cls, text: Optional[str]) -> Optional["InstanceKey"]:
        """Parse `text`, or return None (anonymous mode) when absent or invalid."""
        if not text:
            return None
        try:
            return cls.from_string(text)
        except KeyFormatError as e:
            logger.error("Invalid instance private key, continuing anonymously: %s", e)
            return None

    @classmethod
    def generate(cls, curve: str = "K1") -> "InstanceKey":
        order = CURVES[curve].order
        exp = secrets.randbelow(order - 1) + 1
        return cls(curve, exp.to_bytes(32, "big"))

    @cached_property
    def _signing_key(self) -> SigningKey:
        return SigningKey.from_string(self.secret, curve=CURVES[self.curve])

    @cached_property
    def public_key(self) -> PublicKey:
        return PublicKey.from_verifying_key(self.curve, self._signing_key.get_verifying_key())

    def identity_string(self) -> str:
        return self.public_key.to_string()

    def sign(self, message: Message) -> Signature:
        """
        Deterministic signature over sha256(message).
        K1 signatures are retried with extra entropy until canonical.
        """
        digest = _digest(message)
        for attempt in itertools.count():
            extra = attempt.to_bytes(4, "big") if attempt else b""
            r, s = self._signing_key.sign_digest_deterministic(
                digest, hashfunc=hashlib.sha256,
                sigencode=sigencode_strings_canonize, extra_entropy=extra,
            )
            if self.curve != "K1" or _is_canonical(r, s):
                break
        sig = Signature(self.curve, 0, r, s)
        for recid in (0, 1):
            candidate = Signature(self.curve, recid, r, s)
            if candidate.recover(message) == self.public_key:
                return candidate
        return sig

    def to_string(self) -> str:
        return f"PVT_{self.curve}_{_encode_checked(self.secret, self.curve)}"

    def to_wif(self) -> str:
        if self.curve != "K1":
            raise KeyFormatError("WIF only exists for K1 keys")
        payload = bytes([_WIF_VERSION]) + self.secret
        check = hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4]
        return base58.b58encode(payload + check).decode("ascii")
