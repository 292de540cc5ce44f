"""Gallery engagement ledger with catalog reconciliation."""

__version__ = "0.1.0"

__all__ = ["__version__"]
