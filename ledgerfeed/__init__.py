"""ledgerfeed: paginated feed of ledger-referenced items with identity resolution."""

__version__ = "0.1.0"
