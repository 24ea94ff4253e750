#!/usr/bin/env python3
"""
RetroRoulette
Pick a random game from ROM folders, name lists and MAME.

Usage:
    Spin:     python main.py --spin 3
    Browse:   python main.py --tree --filter zelda
    Web Mode: python main.py --web

For CLI help: python main.py --help
"""

import sys
import os

# Add package to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from retroroulette.cli import run_cli


def main():
    """Main entry point"""
    if '--web' in sys.argv:
        try:
            import flask  # noqa: F401
        except ImportError as e:
            print("Error: Flask is required for web interface")
            print("Install it with: pip install flask")
            print(f"\nDetails: {e}")
            sys.exit(1)
    sys.exit(run_cli())


if __name__ == '__main__':
    main()
