"""Keyed mutual exclusion per commitment hash."""

import threading
from contextlib import contextmanager
from typing import Iterator

from ..errors import CommitmentBusyError


class CommitmentLockTable:
    """
    Arena of commitment hash -> lock.

    Acquisition never waits: a second concurrent operation on the same
    commitment is a caller error and fails with CommitmentBusyError.
    Entries are dropped as soon as they are released.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._held: set[bytes] = set()

    @contextmanager
    def hold(self, commitment_hash: bytes) -> Iterator[None]:
        """Hold the lock for one commitment for the duration of the block."""
        with self._guard:
            if commitment_hash in self._held:
                raise CommitmentBusyError(
                    "Another operation is already in progress for this commitment",
                    commitment_hash=commitment_hash.hex(),
                )
            self._held.add(commitment_hash)

        try:
            yield
        finally:
            with self._guard:
                self._held.discard(commitment_hash)

    def is_held(self, commitment_hash: bytes) -> bool:
        """True while some operation holds the commitment."""
        with self._guard:
            return commitment_hash in self._held

    def __len__(self) -> int:
        with self._guard:
            return len(self._held)
