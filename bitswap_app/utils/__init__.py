"""
Utility functions module.

Common helpers shared across the swap core.

Time Semantics:
- Message timestamps are unix seconds chosen by the message author
- Chain height, not wall-clock time, governs refund eligibility
- Wall-clock time is only used for bookkeeping and skew checks
"""
