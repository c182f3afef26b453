"""Application PIN gate and access token checks."""
from __future__ import annotations

from ..core.errors import InvalidCredential, RateLimited, Unauthorized
from ..core.policy import PolicyStore
from ..core.security import AccessTokenCodec, safe_compare
from .rate_limit import RateLimiter


class AuthorizationGate:
    """Turn the shared app PIN into signed access tokens and check them afterwards."""

    def __init__(self, policy: PolicyStore, codec: AccessTokenCodec, limiter: RateLimiter) -> None:
        self._policy = policy
        self._codec = codec
        self._limiter = limiter

    def verify_pin(self, pin: object, client_key: str) -> str:
        """Return a fresh access token for the correct PIN.

        Missing, malformed and wrong PINs all fail with the same error.
        """

        if not self._limiter.allow(client_key):
            raise RateLimited()
        if not pin or not isinstance(pin, str):
            raise InvalidCredential()
        if not safe_compare(pin, self._policy.app_pin):
            raise InvalidCredential()
        return self._codec.issue()

    def verify_token(self, token: object) -> bool:
        return self._codec.validate(token)

    def require_access(self, token: object) -> None:
        if not token or not self._codec.validate(token):
            raise Unauthorized()
