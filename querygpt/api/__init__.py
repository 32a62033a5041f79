"""HTTP API for QueryGPT conversations."""
