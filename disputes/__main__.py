"""Disputes CLI entry point: python -m disputes"""

from __future__ import annotations

import sys

from disputes.cli import main

if __name__ == "__main__":
    sys.exit(main())
