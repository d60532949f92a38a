"""Content-addressed static asset publishing."""

__version__ = "0.1.0"
