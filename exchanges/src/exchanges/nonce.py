"""
Nonce generation for authenticated requests.

Each adapter instance owns one :class:`NonceGenerator`.  The counter is
seeded from wall-clock seconds when the adapter is initialised and only
ever moves forward; every value is handed out exactly once.  The counter
is guarded by a ``threading.Lock`` so it stays correct when one adapter is
shared between threads, not only between coroutines.

A restart within the same second, or a clock that stepped backwards,
would re-issue values the exchange has already seen.  When a
:class:`NonceStore` is supplied the generator persists a high-water mark
and resumes above it after a restart.  The mark is reserved in blocks of
``reserve`` values: the store is written only when the issued values use
up the current block, and the persisted mark is always at or above every
nonce issued so far.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NONCE_RESERVE = 1000


class NonceStore:
    """Persistence for the highest nonce reserved so far."""

    def load(self) -> Optional[int]:  # pragma: no cover - override
        raise NotImplementedError

    def save(self, value: int) -> None:  # pragma: no cover - override
        raise NotImplementedError


class FileNonceStore(NonceStore):
    """Keeps the high-water mark as a decimal integer in a text file.

    Writes go to a temporary file that is then renamed over the original,
    so a crash mid-write leaves the previous mark intact.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Optional[int]:
        if not self.path.exists():
            return None
        text = self.path.read_text(encoding="utf-8").strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError as exc:
            raise ConfigurationError(f"Nonce store {self.path} is corrupt: {text!r}") from exc

    def save(self, value: int) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(str(value), encoding="utf-8")
        os.replace(tmp, self.path)


class NonceGenerator:
    """Strictly increasing integer source, safe across threads.

    :param clock: returns wall-clock seconds; injectable for tests.
    :param store: optional persistence for the high-water mark.
    :param reserve: how many values each store write reserves.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        store: Optional[NonceStore] = None,
        reserve: int = DEFAULT_NONCE_RESERVE,
    ) -> None:
        if reserve < 1:
            raise ConfigurationError(f"Nonce reserve must be at least 1, got {reserve}")
        self._lock = threading.Lock()
        self._store = store
        self._reserve = reserve
        now = int(clock())
        if now <= 0:
            raise ConfigurationError(f"System clock returned an unusable time ({now}); refusing to mint nonces")
        high_water = store.load() if store is not None else None
        if high_water is not None and high_water >= now:
            # Clock is behind what may already have been issued: resume above the persisted mark.
            logger.warning(
                "Clock (%d) is not ahead of the persisted nonce high-water mark (%d); resuming from the mark",
                now,
                high_water,
            )
            self._next = high_water + 1
        else:
            self._next = now
        self._last: Optional[int] = None
        self._reserved: Optional[int] = None

    @property
    def last(self) -> Optional[int]:
        """The most recently issued value, or ``None`` if none was issued yet."""
        with self._lock:
            return self._last

    def next(self) -> int:
        """Issue the next nonce."""
        with self._lock:
            return self._issue()

    def issue_with(self, build: Callable[[int], object]) -> object:
        """Mint a nonce and run ``build(nonce)`` while still holding the lock.

        Used to mint and sign in one step, so no other request can take a
        later nonce and get its signature built first.
        """
        with self._lock:
            nonce = self._issue()
            return build(nonce)

    def _issue(self) -> int:
        value = self._next
        if self._store is not None and (self._reserved is None or value > self._reserved):
            reserved = value + self._reserve - 1
            self._store.save(reserved)
            self._reserved = reserved
        self._next += 1
        self._last = value
        return value


__all__ = ["NonceStore", "FileNonceStore", "NonceGenerator", "DEFAULT_NONCE_RESERVE"]
