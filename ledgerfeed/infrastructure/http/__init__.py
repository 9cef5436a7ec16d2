"""HTTP transport adapter (aiohttp)."""
