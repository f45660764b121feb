"""CLI entry point for the fabrica package.

Usage:
    python -m fabrica [build|watch|install] [options]

Example:
    python -m fabrica build
    python -m fabrica watch --settings site.yml --verbose
"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
