"""Multi-location resource fetching.

Normalizes content URIs (ar://, ipfs://, data:) into ordered lists of
gateway URLs and fetches the first one that answers with JSON.
"""
