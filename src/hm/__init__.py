"""
hm - Help Me, a command-line assistant.

This package explains shell commands and suggests commands for described
tasks by asking a hosted chat-completion deployment.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from typing import Final

# Package metadata
VERSION: Final[str] = __version__
PACKAGE_NAME: Final[str] = "hm"
USER_AGENT: Final[str] = f"{PACKAGE_NAME}/{VERSION}"

__all__ = [
    "__version__",
    "VERSION",
    "PACKAGE_NAME",
    "USER_AGENT",
]
