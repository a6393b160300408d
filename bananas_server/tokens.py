"""Signed tokens that show a user has logged in."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import jwt

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenizerConfig:
    """Settings for creating tokenizers."""

    time_func: Callable[[], int] | None = None
    valid_sec: int = 0

    def new_tokenizer(self, key: bytes | str | None) -> "JwtTokenizer":
        """Create a tokenizer that signs tokens with the key."""
        if key is None:
            problem = "key required"
        elif self.time_func is None:
            problem = "time func required"
        elif self.valid_sec <= 0:
            problem = "positive valid seconds required"
        else:
            return JwtTokenizer(key=key, config=self)
        raise ValueError(f"creating tokenizer: validation: {problem}")


@dataclass(frozen=True)
class JwtTokenizer:
    """Creates and reads HMAC-SHA256 signed web tokens."""

    key: bytes | str
    config: TokenizerConfig

    def _now(self) -> int:
        assert self.config.time_func is not None
        return self.config.time_func()

    def create(self, username: str, points: int) -> str:
        """Create a token for the user that expires after the configured time."""
        now = self._now()
        claims: dict[str, Any] = {
            "points": points,
            "sub": username,
            "nbf": now,
            "exp": now + self.config.valid_sec,
        }
        return jwt.encode(claims, self.key, algorithm=_ALGORITHM)

    def read_username(self, token_string: str) -> str:
        """Return the username of a valid token; raise jwt.InvalidTokenError otherwise."""
        claims = jwt.decode(
            token_string,
            self.key,
            algorithms=[_ALGORITHM],
            options={"verify_exp": False, "verify_nbf": False},
        )
        now = self._now()
        expires_at = claims.get("exp")
        if expires_at is not None and now > expires_at:
            raise jwt.ExpiredSignatureError("token is expired")
        not_before = claims.get("nbf")
        if not_before is not None and now < not_before:
            raise jwt.ImmatureSignatureError("token is not valid yet")
        return claims.get("sub", "")