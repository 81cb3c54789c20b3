"""Paper-trading wallet with live market prices."""

__version__ = "0.1.0"
