"""
Entry point for running Dreamdress as a module.

Usage:
    python -m dreamdress [command] [options]
"""

from dreamdress.cli import main

if __name__ == "__main__":
    main()
