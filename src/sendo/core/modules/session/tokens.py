"""Identifier, token and short code generation."""

import secrets
from collections.abc import Callable
from uuid import uuid4

# No 0, 1, O, I to avoid confusion when typed from another screen
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 4
MAX_CODE_ATTEMPTS = 10_000


def new_id() -> str:
    return str(uuid4())


def new_token() -> str:
    return secrets.token_urlsafe(32)


def new_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def unique_code(is_taken: Callable[[str], bool]) -> str:
    """Draw codes until one is not taken.

    Raises:
        RuntimeError: If no free code was found within MAX_CODE_ATTEMPTS draws
    """
    for _ in range(MAX_CODE_ATTEMPTS):
        code = new_code()
        if not is_taken(code):
            return code
    raise RuntimeError("Unable to allocate a free session code")


def normalize_code(code: str) -> str:
    return code.strip().upper()


def tokens_match(expected: str, provided: str | None) -> bool:
    """Constant-time token comparison."""
    if not provided:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
