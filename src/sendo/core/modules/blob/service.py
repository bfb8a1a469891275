import asyncio
from collections.abc import AsyncIterable, AsyncIterator
from pathlib import Path

import structlog

from sendo.core.core import Service
from sendo.core.modules.blob.storage import (
    delete_blob_file,
    ensure_session_dir,
    new_blob_path,
    reset_blobs_root,
)
from sendo.core.modules.blob.utils import is_allowed_extension
from sendo.errors import FileTooLargeError, UnsupportedMediaTypeError, ValidationError

logger = structlog.get_logger(__name__)


class BlobService(Service):
    """Stores at most one uploaded file per session on the local filesystem."""

    async def on_start(self) -> None:
        """Drop session directories left over by a previous process; no session can own them."""
        removed = await asyncio.to_thread(reset_blobs_root, self.core.config.blobs_path)
        logger.debug("blob_root_ready", path=self.core.config.blobs_path, removed=removed)

    def location_for(self, session_id: str) -> Path:
        """Get the session's blob directory, creating it on demand."""
        return ensure_session_dir(self.core.config.blobs_path, session_id)

    def validate_upload(self, filename: str | None, declared_size: int | None = None) -> str:
        """Check an upload against the name, type and size gates before any bytes are written.

        Returns:
            The filename

        Raises:
            ValidationError: If the filename is missing
            UnsupportedMediaTypeError: If the extension is not allowed
            FileTooLargeError: If the declared size exceeds the limit
        """
        if not filename or not filename.strip():
            raise ValidationError("No file")
        allowed = self.core.config.allowed_extensions
        if not is_allowed_extension(filename, allowed):
            raise UnsupportedMediaTypeError(f"Only {' '.join(allowed)} are allowed")
        if declared_size is not None and declared_size > self.core.config.max_file_bytes:
            raise FileTooLargeError(f"File exceeds {self.core.config.max_file_mb} MB limit")
        return filename

    async def write(self, session_id: str, filename: str, chunks: AsyncIterable[bytes]) -> tuple[Path, int]:
        """Stream an upload to disk, enforcing the size limit while writing.

        Args:
            session_id: Owning session ID
            filename: Original filename (sanitized for storage)
            chunks: Upload content

        Returns:
            Tuple of (blob path, size in bytes)

        Raises:
            FileTooLargeError: If the content exceeds the limit; the partial blob is removed
            ValidationError: If the content is empty; the blob is removed
        """
        max_bytes = self.core.config.max_file_bytes
        path = await asyncio.to_thread(new_blob_path, self.core.config.blobs_path, session_id, filename)
        size = 0
        try:
            with path.open("wb") as fh:
                async for chunk in chunks:
                    size += len(chunk)
                    if size > max_bytes:
                        raise FileTooLargeError(f"File exceeds {self.core.config.max_file_mb} MB limit")
                    await asyncio.to_thread(fh.write, chunk)
            if size == 0:
                raise ValidationError("No file")
        except BaseException:
            self.delete(path)
            raise
        logger.debug("blob_written", session_id=session_id, size=size)
        return path, size

    def delete(self, path: Path | None) -> None:
        """Delete a blob. Best effort: failures are logged, never raised."""
        if path is None:
            return
        try:
            removed = delete_blob_file(path)
        except OSError:
            logger.exception("blob_delete_failed", file=path.name)
            return
        if removed:
            logger.debug("blob_deleted", file=path.name)

    def exists(self, path: Path) -> bool:
        return path.is_file()

    async def iter_chunks(self, path: Path, chunk_size: int) -> AsyncIterator[bytes]:
        """Read a blob in chunks without blocking the event loop."""
        fh = await asyncio.to_thread(path.open, "rb")
        try:
            while chunk := await asyncio.to_thread(fh.read, chunk_size):
                yield chunk
        finally:
            fh.close()
