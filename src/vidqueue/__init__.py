"""vidqueue - queued social-media media downloads."""

__version__ = "0.1.0"
