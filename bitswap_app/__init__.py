"""
BitSwap - Trustless HTLC Atomic Swap Core

A non-custodial atomic swap protocol between two parties that do not trust
each other. Swaps are expressed as small straight-line contract programs
locked against a SHA-256 commitment and coordinated through a public
broadcast channel that serves as a decentralized order book.
"""

__version__ = "0.1.0"
__author__ = "BitSwap Team"
