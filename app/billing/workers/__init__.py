"""
Background workers for billing.

Usage:
    from billing.workers import process_expired_escrows
"""

from billing.workers.expiry_sweep import process_expired_escrows, sweep_expired_escrows

__all__ = [
    "process_expired_escrows",
    "sweep_expired_escrows",
]
