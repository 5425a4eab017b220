"""Inventory technical-sheet PDF generator."""

__version__ = "1.0.0"
