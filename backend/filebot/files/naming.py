"""Stored filename generation."""
import re

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.-]")


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9.-] with an underscore."""
    return _UNSAFE_CHARS.sub("_", filename)


def stored_name(owner_id: int, timestamp_ms: int, original_filename: str) -> str:
    """Build the on-disk name for an upload.

    Two uploads from the same owner collide only when both the millisecond
    timestamp and the original name match; the ingestor refuses to
    overwrite in that case.

    Examples:
        >>> stored_name(42, 1000, "a b/c.txt")
        '42_1000_a_b_c.txt'
    """
    return f"{owner_id}_{timestamp_ms}_{sanitize_filename(original_filename)}"
