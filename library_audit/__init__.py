"""Audit a local Nintendo Switch library against the public title database."""

__version__ = "0.1.0"
