"""Tests for the bounded order book index."""

from decimal import Decimal

import pytest

from bitswap_app.data.models import SwapIntent, SwapTerms
from bitswap_app.orderbook.index import OrderBookIndex


def _intent(n: int, from_token: str = "SAT", to_token: str = "TEST") -> SwapIntent:
    return SwapIntent(
        id=f"id-{n}",
        proposer_key="ab" * 32,
        commitment_hash=bytes([n % 256]) * 32,
        terms=SwapTerms(from_token, Decimal(100), to_token, Decimal(5000)),
        refund_height=244,
        created_at=1_700_000_000 + n,
    )


class TestOrderBookIndex:
    """Test ordering, eviction and queries."""

    def test_newest_first(self):
        index = OrderBookIndex(capacity=10)
        for n in range(3):
            index.add(_intent(n))

        assert [i.id for i in index] == ["id-2", "id-1", "id-0"]

    def test_evicts_oldest(self):
        """Inserting beyond capacity drops the oldest entry."""
        index = OrderBookIndex(capacity=2)
        assert index.add(_intent(0)) is None
        assert index.add(_intent(1)) is None

        evicted = index.add(_intent(2))

        assert evicted.id == "id-0"
        assert len(index) == 2
        assert "id-0" not in index
        assert index.get("id-2") is not None

    def test_query_by_pair(self):
        index = OrderBookIndex()
        index.add(_intent(0, "SAT", "TEST"))
        index.add(_intent(1, "TEST", "SAT"))
        index.add(_intent(2, "SAT", "TEST"))

        assert [i.id for i in index.query("SAT", "TEST")] == ["id-2", "id-0"]
        assert [i.id for i in index.query("TEST", "SAT")] == ["id-1"]
        assert index.query("ATOM", "BTC") == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            OrderBookIndex(capacity=0)
