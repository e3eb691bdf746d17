"""GitHub handle grammar.

Alphanumeric segments joined by single hyphens, at most 39 characters,
no leading or trailing hyphen.
"""

import re

MAX_HANDLE_LENGTH = 39

_HANDLE_RE = re.compile(r"[A-Za-z0-9]+(?:-[A-Za-z0-9]+)*")


def is_valid_handle(username: str) -> bool:
    """Returns True if ``username`` is a syntactically valid GitHub handle."""
    if not username or len(username) > MAX_HANDLE_LENGTH:
        return False
    return _HANDLE_RE.fullmatch(username) is not None


def handle_error(username: str) -> str:
    """Human readable reason a handle is rejected, or an empty string."""
    if not username:
        return "Username is empty"
    if len(username) > MAX_HANDLE_LENGTH:
        return f"'{username}' is longer than {MAX_HANDLE_LENGTH} characters"
    if not is_valid_handle(username):
        return (
            f"'{username}' is not a valid GitHub username "
            "(letters, digits and single hyphens only, no leading or trailing hyphen)"
        )
    return ""
