#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

    python main.py process my_photo.jpg --layout 3x2

Or use the full CLI:

    python -m brick_mosaic.cli --help
    python -m brick_mosaic.cli palette
"""

from brick_mosaic.cli import app

if __name__ == "__main__":
    app()
