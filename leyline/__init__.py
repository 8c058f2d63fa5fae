"""Incremental, cache-aware synchronization of the leyline standards corpus."""

__version__ = "0.1.0"
