"""Read-only ledger adapter over JSON-RPC."""
