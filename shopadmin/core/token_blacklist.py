"""
Process-wide registry of revoked bearer tokens.

A revoked token is rejected even while its signature and expiry are
still valid. Entries are pruned once the token's own ``exp`` claim has
passed, since an expired token can never authenticate anyway.

State lives in this process only. Deployments running several API
instances need a shared backing store for revocation to be visible
everywhere.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time

from jose import JWTError

from shopadmin.core.security import decode_unverified

logger = logging.getLogger(__name__)


class TokenBlacklist:
    def __init__(self) -> None:
        self._tokens: set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def extract_token(auth_header: str | None) -> str | None:
        """Return the raw token from an ``Authorization: Bearer`` header."""
        if not auth_header or not auth_header.startswith("Bearer "):
            return None
        token = auth_header[len("Bearer "):].strip()
        return token or None

    def blacklist(self, token: str) -> None:
        with self._lock:
            self._tokens.add(token)

    def is_blacklisted(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def size(self) -> int:
        with self._lock:
            return len(self._tokens)

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()

    def sweep(self, now: float | None = None) -> int:
        """Evict expired or undecodable tokens. Returns the number removed."""
        now = time.time() if now is None else now
        with self._lock:
            snapshot = list(self._tokens)

        expired: list[str] = []
        for token in snapshot:
            try:
                exp = decode_unverified(token).get("exp")
            except JWTError:
                expired.append(token)
                continue
            if exp is not None and exp < now:
                expired.append(token)

        with self._lock:
            self._tokens.difference_update(expired)
        return len(expired)

    async def run_periodic_sweep(self, interval_seconds: float) -> None:
        """Sweep forever on a fixed cadence; cancelled at shutdown."""
        while True:
            await asyncio.sleep(interval_seconds)
            before = self.size()
            removed = self.sweep()
            if removed:
                logger.info(
                    "Cleaned up %d expired tokens (%d -> %d)",
                    removed,
                    before,
                    self.size(),
                )


token_blacklist = TokenBlacklist()
