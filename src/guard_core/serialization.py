"""
Per-ticker serialization for check-then-order.

Brokerage state is read, judged and then acted on in separate calls, so two
signals for the same ticker can both pass the duplicate-exposure guard
before either order lands. Holding a ticker's lock from the first guard
through order placement closes that window within one process. It does
nothing across processes; the client_order_id on each OrderRequest is the
cross-process handle.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class TickerLocks:
    """Lazily created threading.Lock per ticker."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, ticker: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(ticker)
            if lock is None:
                lock = threading.Lock()
                self._locks[ticker] = lock
            return lock

    @contextmanager
    def hold(self, ticker: str) -> Iterator[None]:
        lock = self.lock_for(ticker)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
