"""Decentralized order book built from broadcast swap intents."""

from .index import OrderBookIndex
from .synchronizer import IngestOutcome, IngestResult, OrderBookSynchronizer

__all__ = ["IngestOutcome", "IngestResult", "OrderBookIndex", "OrderBookSynchronizer"]
