"""Unified shell history shared across machines."""

__version__ = "0.3.0"
