"""Security helpers for access token handling.

Access tokens have the form ``<expires_at_ms>.<hex hmac-sha256>``. Nothing is
stored server-side: a token is valid as long as it has not expired and its
signature matches the *current* signing secret, so rotating the secret
invalidates every token in circulation.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from typing import Callable

Clock = Callable[[], float]

SECRET_BYTES = 32
MAX_EXPIRY_DIGITS = 16


def generate_secret() -> str:
    """Return a fresh random signing secret."""
    return secrets.token_hex(SECRET_BYTES)


def safe_compare(candidate: str, expected: str) -> bool:
    """Constant-time string comparison.

    Unequal lengths still run a full comparison of the candidate against
    itself so both branches cost the same. Lone surrogates from JSON input
    are encoded rather than rejected, so they fail like any other mismatch.
    """
    left = candidate.encode("utf-8", "surrogatepass")
    right = expected.encode("utf-8", "surrogatepass")
    if len(left) != len(right):
        hmac.compare_digest(left, left)
        return False
    return hmac.compare_digest(left, right)


def sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


class AccessTokenCodec:
    """Issue and validate signed access tokens.

    ``secret`` is a callable so that every check reads the signing secret that
    is current at check time.
    """

    def __init__(self, secret: Callable[[], str], ttl_ms: int, clock: Clock = time.time) -> None:
        self._secret = secret
        self._ttl_ms = ttl_ms
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def issue(self) -> str:
        expires_at = str(self._now_ms() + self._ttl_ms)
        return f"{expires_at}.{sign(expires_at, self._secret())}"

    def validate(self, token: object) -> bool:
        if not isinstance(token, str):
            return False
        parts = token.split(".")
        if len(parts) != 2:
            return False
        payload, signature = parts
        if not payload or not signature:
            return False
        if len(payload) > MAX_EXPIRY_DIGITS or not (payload.isascii() and payload.isdigit()):
            return False
        if int(payload) <= self._now_ms():
            return False
        return safe_compare(signature, sign(payload, self._secret()))
