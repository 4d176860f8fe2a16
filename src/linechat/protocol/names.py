"""
Nickname validation.

A nickname is 1-12 ASCII letters, digits or underscores. Nothing else is
checked here; in particular two connections may hold the same name.
"""

import re


MAX_NICKNAME_LENGTH = 12

# re.ASCII keeps \w-style shortcuts out of it; the class is spelled out anyway
_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]{1,%d}" % MAX_NICKNAME_LENGTH, re.ASCII)


def is_valid_name(candidate: str) -> bool:
    """Return True if *candidate* is an acceptable nickname."""
    if not isinstance(candidate, str):
        return False
    return _NAME_PATTERN.fullmatch(candidate) is not None
