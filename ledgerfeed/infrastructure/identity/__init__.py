"""Adapters for the identity services (Farcaster usernames, Basenames)."""
