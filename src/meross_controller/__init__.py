"""Meross device adapter core: debounced, serialized, cache-reconciled device control."""

__version__ = "0.1.0"
