"""Cache tiers and request coalescing.

Provides the memory and diskcache-backed key-value stores, TTL-aware
timestamped cache stores, and the single-flight cache that fronts every
upstream lookup.
Bounded Context: Cache Management
"""
