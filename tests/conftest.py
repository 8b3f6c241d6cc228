"""Pytest configuration and shared fixtures."""

import os
from decimal import Decimal
from typing import Any, Optional

import pytest

from bitswap_app.broadcast.memory_channel import InMemoryBroadcastChannel
from bitswap_app.broadcast.message import SignedMessage, sign_message
from bitswap_app.config.defaults import DefaultConfig
from bitswap_app.config.loader import ConfigLoader
from bitswap_app.crypto.commitment import generate_secret, sha256
from bitswap_app.data.models import SwapTerms
from bitswap_app.data.parsers import encode_intent_payload
from bitswap_app.engine import SwapEngine
from bitswap_app.persistence.secret_store import SecretStore
from bitswap_app.wallet.simulated import SimulatedLedger, SimulatedWallet

TOPIC = "bitswap/intents"


@pytest.fixture
def ledger() -> SimulatedLedger:
    """Signet ledger at height 100."""
    return SimulatedLedger(network="signet", height=100)


@pytest.fixture
def alice(ledger) -> SimulatedWallet:
    """Initiator wallet holding 1000 SAT."""
    wallet = SimulatedWallet(ledger)
    ledger.mint(wallet.get_public_key(), "SAT", Decimal("1000"))
    return wallet


@pytest.fixture
def bob(ledger) -> SimulatedWallet:
    """Taker wallet holding 10000 TEST."""
    wallet = SimulatedWallet(ledger)
    ledger.mint(wallet.get_public_key(), "TEST", Decimal("10000"))
    return wallet


@pytest.fixture
def channel() -> InMemoryBroadcastChannel:
    return InMemoryBroadcastChannel()


@pytest.fixture
def fast_config() -> DefaultConfig:
    """Default signet configuration without publish retry delays."""
    return ConfigLoader.create().load(overrides={"broadcast": {"retry_delay_seconds": 0}})


@pytest.fixture
def secret_store(tmp_path) -> SecretStore:
    return SecretStore(os.path.join(tmp_path, "secrets.db"))


@pytest.fixture
def make_engine(tmp_path, channel, fast_config):
    """Factory building an engine per wallet, each with its own secret database."""
    def _make(wallet, name: str) -> SwapEngine:
        store = SecretStore(os.path.join(tmp_path, f"{name}.db"))
        return SwapEngine(wallet, channel, config=fast_config, secret_store=store)
    return _make


@pytest.fixture
def make_intent_message():
    """Factory for signed intent messages."""
    def _make(
        wallet,
        commitment_hash: Optional[bytes] = None,
        from_token: str = "SAT",
        from_amount: Any = 100,
        to_token: str = "TEST",
        to_amount: Any = 5000,
        refund_height: int = 244,
        created_at: Optional[int] = None,
        topic: str = TOPIC
    ) -> SignedMessage:
        commitment_hash = commitment_hash or sha256(generate_secret())
        terms = SwapTerms(from_token, Decimal(str(from_amount)), to_token, Decimal(str(to_amount)))
        payload = encode_intent_payload(commitment_hash, terms, refund_height)
        return sign_message(wallet, topic, payload, created_at=created_at)
    return _make
