#!/usr/bin/env python3
"""
Basic Usage Example - BitSwap HTLC swap core

This script runs a complete swap between two parties on a simulated signet
ledger. It shows how to:
- Create wallets and engines sharing a ledger and a broadcast channel
- Propose, lock and announce a swap
- Discover and take the intent from the order book
- Claim with the secret and reuse the revealed secret on the other side

Run: python examples/basic_usage.py
"""

import tempfile
from decimal import Decimal
from pathlib import Path

from bitswap_app.broadcast import InMemoryBroadcastChannel
from bitswap_app.config.loader import ConfigLoader
from bitswap_app.engine import SwapEngine
from bitswap_app.logging.config import configure_logging
from bitswap_app.persistence.secret_store import SecretStore
from bitswap_app.wallet import SimulatedLedger, SimulatedWallet


def print_balances(label: str, wallet: SimulatedWallet) -> None:
    balances = ", ".join(f"{amount} {token}" for token, amount in sorted(wallet.get_balances().items()))
    print(f"   {label}: {balances or 'nothing'}")


def main():
    """Main demonstration function."""
    configure_logging(level="WARNING")

    print("🚀 BitSwap HTLC Core - Basic Usage Demo")
    print("=" * 60)

    print("1. Setting up a signet ledger, two wallets and a shared channel...")
    ledger = SimulatedLedger(network="signet", height=100)
    alice = SimulatedWallet(ledger)
    bob = SimulatedWallet(ledger)
    ledger.mint(alice.get_public_key(), "SAT", Decimal(1000))
    ledger.mint(bob.get_public_key(), "TEST", Decimal(10000))
    channel = InMemoryBroadcastChannel()
    config = ConfigLoader.create().load("signet")

    with tempfile.TemporaryDirectory() as tmp:
        alice_engine = SwapEngine(alice, channel, config=config,
                                  secret_store=SecretStore(str(Path(tmp) / "alice.db")))
        bob_engine = SwapEngine(bob, channel, config=config,
                                secret_store=SecretStore(str(Path(tmp) / "bob.db")))
        print_balances("Alice", alice)
        print_balances("Bob", bob)
        print()

        print("2. Alice proposes 100 SAT for 5000 TEST...")
        proposal = alice_engine.propose_swap("SAT", 100, "TEST", 5000)
        swap_id = proposal.swap_id
        print(f"   Swap id (commitment hash): {swap_id[:16]}...")
        print(f"   Refund height: {proposal.refund_height}")
        alice_engine.execute_lock(swap_id)
        message = alice_engine.announce(swap_id)
        print(f"   Locked and announced as message {message.id[:16]}...")
        print()

        print("3. Bob syncs the order book and takes the intent...")
        counts = bob_engine.sync_orderbook()
        print(f"   Ingest: {counts}")
        intent = bob_engine.find_intents("SAT", "TEST")[0]
        bob_engine.take_intent(intent)
        counter_program = ledger.transactions[-1].program
        print(f"   Counter-lock refund height: {bob_engine.get_swap_state(swap_id).refund_height}")
        print()

        print("4. Alice audits the counter-lock and claims...")
        summary = alice_engine.observe_counter_lock(swap_id, counter_program)
        print(f"   Counter-leg: {summary.amount} {summary.token}")
        alice_engine.claim(swap_id)
        claim_program = ledger.transactions[-1].program
        print()

        print("5. Bob reads the secret from Alice's claim and claims...")
        bob_engine.claim_with_revealed_secret(swap_id, claim_program)
        print()

        print("6. Final state:")
        print(f"   Alice: {alice_engine.get_swap_state(swap_id).state.value}")
        print(f"   Bob:   {bob_engine.get_swap_state(swap_id).state.value}")
        print_balances("Alice", alice)
        print_balances("Bob", bob)

    print()
    print("✅ Demo completed successfully!")


if __name__ == "__main__":
    main()
