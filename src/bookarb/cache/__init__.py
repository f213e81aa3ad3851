"""Shared order book cache (redis) used to exchange snapshots between venue processes."""
