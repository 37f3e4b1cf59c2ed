"""HTTP API for quotes and swap records."""
