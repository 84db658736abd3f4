"""Feed Archiver - keep the full history of short-window RSS/Atom feeds."""

__version__ = "0.1.0"
