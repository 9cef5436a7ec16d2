"""Adapter for the backing list of feed candidates."""
