"""Streamed, module-by-module repository analysis."""

__version__ = "0.1.0"
