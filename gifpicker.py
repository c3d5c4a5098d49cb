#!/usr/bin/env python3
"""
Convenience shim to run gifpicker from a source checkout.
Usage: python gifpicker.py [--help|--config PATH|--debug|--wipe-data]
"""

from gifpicker.cli import main


if __name__ == "__main__":
    main()
