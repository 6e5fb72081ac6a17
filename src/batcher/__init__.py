"""Batch TON transfers from a custodial highload wallet."""

__version__ = "1.0.0"
