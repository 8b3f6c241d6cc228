"""Bounded, most-recent-first index of swap intents."""

from collections import OrderedDict
from typing import Iterator, Optional

from ..data.models import SwapIntent


class OrderBookIndex:
    """
    Insertion-ordered intents keyed by message id.

    The newest intent sits at the front; inserting beyond capacity evicts
    the oldest. Not thread-safe on its own.
    """

    def __init__(self, capacity: int = 100):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got: {capacity}")
        self.capacity = capacity
        self._intents: OrderedDict[str, SwapIntent] = OrderedDict()

    def add(self, intent: SwapIntent) -> Optional[SwapIntent]:
        """
        Insert an intent at the front.

        Returns:
            The evicted intent, if the index was full
        """
        self._intents[intent.id] = intent
        self._intents.move_to_end(intent.id, last=False)

        if len(self._intents) > self.capacity:
            _, evicted = self._intents.popitem(last=True)
            return evicted
        return None

    def get(self, intent_id: str) -> Optional[SwapIntent]:
        return self._intents.get(intent_id)

    def query(self, from_token: str, to_token: str) -> list[SwapIntent]:
        """Intents offering from_token for to_token, most recent first."""
        return [intent for intent in self._intents.values() if intent.matches_pair(from_token, to_token)]

    def intents(self) -> list[SwapIntent]:
        return list(self._intents.values())

    def __contains__(self, intent_id: object) -> bool:
        return intent_id in self._intents

    def __len__(self) -> int:
        return len(self._intents)

    def __iter__(self) -> Iterator[SwapIntent]:
        return iter(self.intents())
