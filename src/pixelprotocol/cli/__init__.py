"""Pixel Protocol arena CLI.

Usage:
    pixel-arena --help
"""

from pixelprotocol.cli.app import app

__all__ = ["app"]
