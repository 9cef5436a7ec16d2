"""Application services: identity, owner, metadata, feed aggregation, sharing."""
