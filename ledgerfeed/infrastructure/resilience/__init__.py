"""API Resilience Implementations.

Contains services for handling upstream rate limits and retries with
exponential backoff.
Bounded Context: API Resilience
"""
