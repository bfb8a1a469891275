"""Utility functions for uploaded file handling."""

import re
from pathlib import Path
from urllib.parse import quote


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe filesystem storage on Unix-like systems.

    Removes dangerous characters, prevents path traversal, and handles edge cases
    while preserving readability and file extensions.

    Args:
        filename: Original filename from the sender

    Returns:
        Sanitized filename safe for filesystem use
    """
    # Browsers on Windows may send full client paths
    filename = filename.replace("\\", "/")

    # Remove path components to prevent traversal attacks
    filename = Path(filename).name

    # Remove leading dots to prevent hidden files
    filename = filename.lstrip(".")

    # Allow only word characters, spaces, dots, and hyphens
    sanitized = re.sub(r"[^\w\s.-]", "_", filename)
    sanitized = re.sub(r"_+", "_", sanitized)
    sanitized = re.sub(r"\s+", " ", sanitized)

    # Limit length to 100 characters while preserving extension
    if len(sanitized) > 100:
        parts = sanitized.rsplit(".", 1)
        if len(parts) == 2:
            name, ext = parts
            max_name_len = 96 - len(ext)
            sanitized = f"{name[:max_name_len]}.{ext}" if max_name_len > 0 else f"file.{ext}"
        else:
            sanitized = sanitized[:100]

    if not sanitized or not re.sub(r"[\s._-]", "", sanitized):
        sanitized = "unnamed_file"

    return sanitized


def get_extension(filename: str) -> str:
    """Lowercased extension including the dot, or empty string."""
    return Path(filename.replace("\\", "/")).suffix.lower()


def is_allowed_extension(filename: str, allowed_extensions: list[str]) -> bool:
    ext = get_extension(filename)
    if not ext:
        return False
    allowed = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in allowed_extensions}
    return ext in allowed


def content_disposition(filename: str) -> str:
    """Build an attachment Content-Disposition header that round-trips non-ASCII names.

    Old clients read the ASCII fallback, RFC 6266 clients read filename*.
    """
    ascii_name = re.sub(r"[^\x20-\x7e]+", "_", filename).replace('"', "_").replace("\\", "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"
