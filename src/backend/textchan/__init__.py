"""Textchan: a weekend-only anonymous forum."""

__version__ = "1.0.0"
