"""Variant discovery scanner for card catalog sites."""

__version__ = "0.1.0"
