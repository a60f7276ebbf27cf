"""
Core package for hm.

This package contains prompt construction, the completion client and the
error taxonomy shared by every component.
"""

__all__ = ["client", "errors", "prompt"]
