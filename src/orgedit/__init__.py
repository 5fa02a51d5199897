"""Structural editing for org-style outline documents."""

__version__ = "0.1.0"
