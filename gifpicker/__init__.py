"""gifpicker - search Klipy, keep favorites, copy GIFs to the clipboard."""

from .__version__ import __version__

__all__ = ["__version__"]
