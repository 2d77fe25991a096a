"""Assemble low-level code and package binary files for linking."""

__version__ = "0.1.0"
