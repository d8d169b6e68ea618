"""Input discovery and filename sanitization."""

from ccmusic.scanner.naming import sanitize
from ccmusic.scanner.walker import walk_files

__all__ = ["sanitize", "walk_files"]
