"""Filename sanitization for output paths."""

import re
import string
from pathlib import PurePath

from ccmusic.models.status import NamingPolicy
from ccmusic.utils.errors import InvalidNameError

ALLOWED_CHARACTERS = frozenset(string.ascii_letters + string.digits + "._-")

_WHITESPACE_RUN = re.compile(r"\s+")
_SURROUNDING_JUNK = re.compile(r"^[\s.]+|[\s.]+$")


def sanitize(
    filename: str,
    policy: NamingPolicy = NamingPolicy.LOWERCASE,
) -> str:
    """
    Turn an arbitrary filename into a safe basename without extension.

    Steps:
    1. Drop directories and the final extension
    2. Trim surrounding dots and whitespace
    3. Collapse internal whitespace runs to "_"
    4. Lowercase (LOWERCASE policy only)
    5. Keep only characters from [a-zA-Z0-9._-]
    6. Trim surrounding dots again so the result is never hidden

    Args:
        filename: Original filename or path
        policy: Case handling policy

    Returns:
        Non-empty sanitized basename

    Raises:
        InvalidNameError: If nothing usable is left
    """
    name = PurePath(filename.replace("\\", "/")).name
    stem = PurePath(name).stem if name else ""

    stem = _SURROUNDING_JUNK.sub("", stem)
    stem = _WHITESPACE_RUN.sub("_", stem)

    if policy == NamingPolicy.LOWERCASE:
        stem = stem.lower()

    safe = "".join(c for c in stem if c in ALLOWED_CHARACTERS)
    safe = safe.strip(".")

    if not safe:
        raise InvalidNameError(f"Filename {filename!r} has no usable characters")

    return safe
