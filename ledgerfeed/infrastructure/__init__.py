"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (HTTP APIs, the ledger,
content gateways, disk stores, the terminal) by implementing the interfaces
defined in the domain layer.
"""
