"""CLI entry point exposed via ``python -m orbitcast``."""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
