"""
Stored-name derivation.

Caller-supplied filenames are never used on disk as-is. A stored name is a
unique token followed by a character-filtered copy of the original name, so it
is always a single, traversal-free path segment.
"""

import os
import re
import secrets
import threading
import time

SAFE_NAME_PATTERN = re.compile(r"[^A-Za-z0-9._-]")
PLACEHOLDER = "_"
MAX_STEM_LENGTH = 120
MAX_EXTENSION_LENGTH = 16

# <millis>-<4 hex>_<filtered original name>
STORED_NAME_PREFIX = re.compile(r"^(\d{13,})-([0-9a-f]{4})_")


class _TokenSource:
    """Millisecond timestamps that never repeat or go backwards within a process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            now = int(time.time() * 1000)
            self._last = max(now, self._last + 1)
            return self._last


_tokens = _TokenSource()


def _filter(text: str) -> str:
    return SAFE_NAME_PATTERN.sub(PLACEHOLDER, text)


def derive_stored_name(original_name: str) -> str:
    """
    Map an arbitrary caller-supplied filename onto a safe, unique on-disk name.

    Any directory components are discarded, characters outside
    ``[A-Za-z0-9._-]`` become ``_`` and the extension is kept. An input that
    filters down to nothing gets a random stem instead.
    """
    original_name = original_name or ""
    # Treat both separator styles as separators whatever the host OS is.
    basename = re.split(r"[\\/]", original_name)[-1]
    stem, extension = os.path.splitext(basename)
    if len(extension) > MAX_EXTENSION_LENGTH:
        stem, extension = basename, ""

    safe_stem = _filter(stem)[:MAX_STEM_LENGTH]
    safe_extension = _filter(extension).lower()
    if not safe_stem.strip("._"):
        safe_stem = secrets.token_hex(4)

    return f"{_tokens.next()}-{secrets.token_hex(2)}_{safe_stem}{safe_extension}"


def original_name_from_stored(stored_name: str) -> str:
    """Best-effort reverse of :func:`derive_stored_name` for listings."""
    return STORED_NAME_PREFIX.sub("", stored_name, count=1)


def is_safe_segment(name: str) -> bool:
    """True when ``name`` can only ever address a single entry inside one directory."""
    if not name or name in (".", ".."):
        return False
    if "/" in name or "\\" in name or "\x00" in name:
        return False
    return not os.path.isabs(name)
