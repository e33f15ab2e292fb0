"""
Vault accounting engine.

This package is intentionally split into:
- uint / rounding / exchange_rate: pure arithmetic (no state, no collaborators)
- ledgers / transitions: immutable state + pure deposit/redeem transitions
- observer / interfaces / identity: the external collaborators, injected
- store / service: commit point, locking, payout dispatch, logging

Import submodules directly; this package does not re-export them.
"""
