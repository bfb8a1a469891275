"""Filesystem operations for session blobs."""

import shutil
from pathlib import Path
from uuid import UUID, uuid4

from sendo.core.modules.blob.utils import sanitize_filename


def get_session_dir(blobs_path: str, session_id: str) -> Path:
    """Get the directory holding blobs of one session.

    Args:
        blobs_path: Base path for blob storage
        session_id: Session ID

    Returns:
        Absolute path to the session directory (may not exist yet)
    """
    return (Path(blobs_path) / session_id).resolve()


def ensure_session_dir(blobs_path: str, session_id: str) -> Path:
    session_dir = get_session_dir(blobs_path, session_id)
    session_dir.mkdir(parents=True, exist_ok=True)
    return session_dir


def new_blob_path(blobs_path: str, session_id: str, filename: str) -> Path:
    """Get a fresh, collision-free path for an upload inside the session directory.

    A random prefix keeps a replacement upload with the same name from
    clobbering the previous blob before it is deleted.
    """
    session_dir = ensure_session_dir(blobs_path, session_id)
    return session_dir / f"{uuid4().hex[:12]}__{sanitize_filename(filename)}"


def delete_blob_file(path: Path) -> bool:
    """Delete a blob and its session directory if it became empty.

    Returns:
        True if the file existed and was removed

    Raises:
        OSError: If the file exists but cannot be removed
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    try:
        path.parent.rmdir()
    except OSError:
        pass  # Not empty or already gone
    return True


def is_session_dir(path: Path) -> bool:
    """Check whether a path looks like a directory created for a session."""
    if not path.is_dir() or path.is_symlink():
        return False
    try:
        UUID(path.name)
    except ValueError:
        return False
    return True


def reset_blobs_root(blobs_path: str) -> int:
    """Remove session directories left under the blob root and ensure the root exists.

    Only UUID-named directories are removed; anything else under the root
    is not ours and is left in place.

    Returns:
        Number of session directories removed
    """
    root = Path(blobs_path)
    removed = 0
    if root.exists():
        for child in root.iterdir():
            if is_session_dir(child):
                shutil.rmtree(child, ignore_errors=True)
                removed += 1
    root.mkdir(parents=True, exist_ok=True)
    return removed
