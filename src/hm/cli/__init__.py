"""
CLI interface package for hm.

This package contains the Typer application and its command handlers.
"""

__all__ = ["app"]
