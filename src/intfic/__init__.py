"""Branching interactive fiction from plain-text story files."""

__version__ = "0.1.0"
