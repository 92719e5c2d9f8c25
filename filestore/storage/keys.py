"""Storage key generation.

Keys look like ``{stem}_{yyyyMMddHHmmss}_{8 hex chars}{.ext}``. Only the
sanitized basename of the caller's filename ends up in a key.
"""

from __future__ import annotations

import re
import secrets
from datetime import UTC, datetime

DEFAULT_STEM = "file"
MAX_STEM_LENGTH = 100
MAX_EXTENSION_LENGTH = 16
MAX_KEY_ATTEMPTS = 5

_UNSAFE_STEM_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")
_UNSAFE_EXTENSION_CHARS = re.compile(r"[^a-z0-9]+")


def _basename(filename: str) -> str:
    # Browsers on Windows may send the full client path.
    return re.split(r"[\\/]", filename or "")[-1]


def split_filename(filename: str) -> tuple[str, str]:
    """Return ``(stem, extension)`` of the basename, extension including the dot."""
    name = _basename(filename)
    # Dotfiles like ".env" have no extension.
    dot = name.rfind(".")
    if dot <= 0:
        return name, ""
    return name[:dot], name[dot:]


def sanitize_stem(stem: str) -> str:
    cleaned = _UNSAFE_STEM_CHARS.sub("_", stem)
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned).strip("_-")
    cleaned = cleaned[:MAX_STEM_LENGTH].rstrip("_-")
    return cleaned or DEFAULT_STEM


def sanitize_extension(extension: str) -> str:
    cleaned = _UNSAFE_EXTENSION_CHARS.sub("", extension.lower())[:MAX_EXTENSION_LENGTH]
    return f".{cleaned}" if cleaned else ""


def generate_key(original_filename: str, now: datetime | None = None) -> str:
    stem, extension = split_filename(original_filename)
    timestamp = (now or datetime.now(UTC)).strftime("%Y%m%d%H%M%S")
    suffix = secrets.token_hex(4)
    return f"{sanitize_stem(stem)}_{timestamp}_{suffix}{sanitize_extension(extension)}"


def is_safe_key(key: str) -> bool:
    """Whether ``key`` is a single, non-special path component."""
    if not key or key in (".", ".."):
        return False
    return "/" not in key and "\\" not in key and "\x00" not in key
