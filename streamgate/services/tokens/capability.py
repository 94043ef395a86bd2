# streamgate/services/tokens/capability.py
"""
Stateless capability tokens for the media proxy.

A token grants exactly one thing: streaming one (video, kind) pair until
`expires_at`. It carries no user identity and needs no server-side lookup:

    sig = base64url(HMAC-SHA256(secret, f"{video_id}.{kind}.{expires_at}"))

Verification recomputes the signature and compares in constant time.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import math
import re
import time
from dataclasses import dataclass
from typing import Optional, Union

from streamgate.domain.enums.media_kind import MediaKind
from streamgate.domain.exceptions import ExpiredToken, InvalidToken, MissingToken
from streamgate.domain.ports.clock import Clock

DELIMITER = "."
_INT_RE = re.compile(r"^-?\d+$", re.ASCII)
MAX_EXPIRES_AT_DIGITS = 20

ExpiresAt = Union[int, float, str]


@dataclass(frozen=True)
class CapabilityToken:
    video_id: str
    kind: MediaKind
    expires_at: int
    signature: str

    def as_query(self) -> dict[str, str]:
        return {"type": self.kind.value, "exp": str(self.expires_at), "sig": self.signature}


def parse_expires_at(value: object) -> Optional[int]:
    """Integer Unix seconds, or None for anything malformed, non-finite or absurdly large."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        exp = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        exp = int(value)
    elif isinstance(value, str):
        s = value.strip()
        # length check first: int() refuses very long digit strings
        if len(s) > MAX_EXPIRES_AT_DIGITS + 1 or not _INT_RE.match(s):
            return None
        exp = int(s)
    else:
        return None
    if abs(exp) >= 10 ** MAX_EXPIRES_AT_DIGITS:
        return None
    return exp


class CapabilityTokenCodec:
    def __init__(self, secret: str, *, clock_skew_sec: int = 30, clock: Clock = time.time) -> None:
        if not secret:
            raise ValueError("CapabilityTokenCodec requires a non-empty secret")
        self._key = secret.encode("utf-8")
        self.clock_skew_sec = clock_skew_sec
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    # ---- signing -------------------------------------------------------------
    @staticmethod
    def canonical(video_id: str, kind: Union[MediaKind, str], expires_at: int) -> str:
        return DELIMITER.join((video_id, str(kind), str(expires_at)))

    def mint(self, video_id: str, kind: Union[MediaKind, str], expires_at: int) -> str:
        payload = self.canonical(video_id, kind, int(expires_at)).encode("utf-8")
        digest = hmac.new(self._key, payload, hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def issue(self, video_id: str, kind: MediaKind, ttl_sec: int) -> CapabilityToken:
        exp = self.now() + int(ttl_sec)
        return CapabilityToken(video_id=video_id, kind=kind, expires_at=exp, signature=self.mint(video_id, kind, exp))

    # ---- checking ------------------------------------------------------------
    def verify(self, video_id: str, kind: Union[MediaKind, str], expires_at: ExpiresAt, signature: str) -> bool:
        """Signature check only; never raises."""
        exp = parse_expires_at(expires_at)
        if exp is None or not isinstance(signature, str) or not signature or not video_id:
            return False
        # ids and signatures are ASCII; anything else cannot match and may not encode
        if not signature.isascii() or not video_id.isascii():
            return False
        expected = self.mint(video_id, kind, exp).encode("ascii")
        actual = signature.encode("ascii")
        if len(expected) != len(actual):
            return False
        return hmac.compare_digest(expected, actual)

    def is_unexpired(self, expires_at: ExpiresAt, now: Optional[float] = None) -> bool:
        """Expiry is a hard bound, extended only by the clock-skew grace."""
        exp = parse_expires_at(expires_at)
        if exp is None:
            return False
        now = self.now() if now is None else now
        return now - self.clock_skew_sec <= exp

    def authorize(
        self,
        video_id: str,
        kind: MediaKind,
        expires_at: Optional[str],
        signature: Optional[str],
    ) -> None:
        """
        Proxy-side check: raises MissingToken, ExpiredToken or InvalidToken.
        All three are final for the request; clients fetch a new token instead.
        """
        if not expires_at or not signature:
            raise MissingToken()
        if not self.is_unexpired(expires_at):
            raise ExpiredToken()
        if not self.verify(video_id, kind, expires_at, signature):
            raise InvalidToken()
