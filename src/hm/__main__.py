"""
Entry point for running hm as a module.

This allows users to run the CLI using:
    python -m hm [command] [options]
"""

from hm.cli.app import main

if __name__ == "__main__":
    main()
