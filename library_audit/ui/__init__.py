"""Terminal user interface components."""

from .console import ConsoleReporter

__all__ = ["ConsoleReporter"]
