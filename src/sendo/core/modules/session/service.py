import asyncio
import math
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import aclosing
from datetime import datetime
from urllib.parse import urlencode

import structlog

from sendo.core.core import Service
from sendo.core.modules.session import tokens
from sendo.core.modules.session.models import (
    CloseReason,
    FileMeta,
    FileView,
    ReceiverSession,
    Role,
    SenderSession,
    Session,
    SessionStatusView,
)
from sendo.core.modules.session.store import SessionStore
from sendo.errors import AuthenticationError, ExpiredError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class DownloadTransfer:
    """A single download of a session's file.

    The bytes are deleted only when `stream()` runs to completion. If the
    consumer stops early (client abort, cancellation, `aclose()`), the file and
    the session are left untouched so the receiver can retry.
    """

    def __init__(self, service: "SessionService", session: Session, meta: FileMeta) -> None:
        self._service = service
        self._session = session
        self._meta = meta
        self.completed = False

    @property
    def filename(self) -> str:
        return self._meta.name

    @property
    def content_type(self) -> str:
        return self._meta.content_type

    @property
    def size(self) -> int:
        return self._meta.size

    async def stream(self) -> AsyncIterator[bytes]:
        chunk_size = self._service.core.config.download_chunk_size
        try:
            async with aclosing(self._service.core.services.blob.iter_chunks(self._meta.storage_path, chunk_size)) as chunks:
                async for chunk in chunks:
                    yield chunk
        except (asyncio.CancelledError, GeneratorExit):
            logger.info("download_aborted", session_id=self._session.id)
            raise
        self.completed = True
        await self._service.finish_download(self._session, self._meta)


class SessionService(Service):
    """Session lifecycle transitions between receiver and sender."""

    def __init__(self) -> None:
        super().__init__()
        self._cleanup_tasks: set[asyncio.Task[None]] = set()

    @property
    def store(self) -> SessionStore:
        return self.core.store

    @property
    def _ttl(self) -> int:
        return self.core.config.session_ttl_seconds

    async def on_stop(self) -> None:
        """Cancel delayed download cleanups; leftover blobs are wiped on next start."""
        for task in self._cleanup_tasks:
            task.cancel()
        self._cleanup_tasks.clear()

    def get_session(self, session_id: str) -> Session:
        """Get session by ID.

        Raises:
            NotFoundError: If the session is unknown or already purged
        """
        session = self.store.get_by_id(session_id)
        if session is None:
            raise NotFoundError
        return session

    def build_join_url(self, session: Session, origin: str) -> str:
        """URL encoded in the QR image; opening it joins as sender."""
        query = urlencode({"sessionId": session.id, "t": session.sender_token})
        return f"{self._origin(origin)}/join?{query}"

    def build_qr_url(self, session: Session, origin: str) -> str:
        return f"{self._origin(origin)}/api/qr/{session.id}.png"

    async def create_receiver_session(self, origin: str) -> ReceiverSession:
        """Open a new session on behalf of a receiver."""
        session = self.store.create(self._ttl)
        self.store.mark_receiver_seen(session)
        self.store.touch(session, self._ttl)
        logger.info("receiver_session_created", session_id=session.id)
        return ReceiverSession(
            session_id=session.id,
            code=session.code,
            receiver_token=session.receiver_token,
            join_url=self.build_join_url(session, origin),
            qr_url=self.build_qr_url(session, origin),
            expires_at=session.expires_at,
            heartbeat_interval=self.core.config.heartbeat_interval_seconds,
        )

    async def connect_sender(self, code: str | None, session_id: str | None) -> SenderSession:
        """Join a session as sender by short code, falling back to session ID.

        Raises:
            ValidationError: If neither code nor session ID is given
            NotFoundError: If neither resolves to a session
            ExpiredError: If the session is closed or past its TTL
        """
        if not code and not session_id:
            raise ValidationError("code or sessionId is required")
        session = self.store.get_by_code(code) if code else None
        if session is None and session_id:
            session = self.store.get_by_id(session_id)
        if session is None:
            raise NotFoundError
        return self._join_as_sender(session)

    async def join_via_qr(self, session_id: str, token: str | None) -> SenderSession:
        """Join a session as sender with the token embedded in the QR link.

        Raises:
            NotFoundError: If the session is unknown
            AuthenticationError: If the token does not match
            ExpiredError: If the session is closed or past its TTL
        """
        session = self.get_session(session_id)
        if not tokens.tokens_match(session.sender_token, token):
            raise AuthenticationError
        return self._join_as_sender(session)

    async def get_status(self, session_id: str) -> SessionStatusView:
        session = self.get_session(session_id)
        current = self.store.now()

        seconds_left = None
        if session.expires_at is not None:
            seconds_left = max(0, math.floor((session.expires_at - current).total_seconds()))

        return SessionStatusView(
            closed=session.is_closed or session.is_expired(current),
            closed_by=session.closed_by,
            status=session.status,
            has_file=session.file is not None,
            file=FileView.from_meta(session.file) if session.file else None,
            expires_at=session.expires_at,
            seconds_left=seconds_left,
            sender_connected=session.sender_connected,
        )

    async def heartbeat(self, session_id: str, role: Role) -> datetime | None:
        """Refresh liveness of one party and roll the TTL forward.

        Returns:
            The new expiry deadline (None without TTL)

        Raises:
            NotFoundError: If the session is unknown
            ExpiredError: If the session is closed or past its TTL
        """
        session = self.get_session(session_id)
        self._ensure_open(session)
        if role == Role.SENDER:
            self.store.mark_sender_seen(session)
        else:
            self.store.mark_receiver_seen(session)
        self.store.touch(session, self._ttl)
        return session.expires_at

    async def disconnect(self, session_id: str, by: Role) -> None:
        """Close the session on behalf of one party, deleting any held file first."""
        session = self.get_session(session_id)
        self._discard_file(session)
        if self.store.close(session, CloseReason(by.value)):
            logger.info("session_disconnected", session_id=session.id, by=by)

    async def upload_file(
        self,
        session_id: str,
        sender_token: str | None,
        filename: str | None,
        content_type: str | None,
        chunks: AsyncIterable[bytes] | None,
        declared_size: int | None = None,
    ) -> FileView:
        """Store the sender's file, replacing any previous one.

        All gates run before bytes are written; a staging blob that fails later
        is deleted before the error propagates.

        Raises:
            NotFoundError: If the session is unknown
            AuthenticationError: If the sender token does not match
            ExpiredError: If the session is closed or expires before the upload finishes
            ValidationError: If the file is missing, empty, not allowed, or too large
        """
        session = self.get_session(session_id)
        if not tokens.tokens_match(session.sender_token, sender_token):
            raise AuthenticationError
        self._ensure_open(session)
        blob = self.core.services.blob
        if chunks is None:
            raise ValidationError("No file")
        name = blob.validate_upload(filename, declared_size)

        path, size = await blob.write(session.id, name, chunks)

        meta = FileMeta(name=name, size=size, content_type=content_type or DEFAULT_CONTENT_TYPE, storage_path=path)
        if session.is_closed or session.is_expired(self.store.now()):
            blob.delete(path)
            raise ExpiredError
        # Previous bytes go before the new metadata is committed
        previous = session.file
        if previous is not None and previous.storage_path != path:
            blob.delete(previous.storage_path)
        if not self.store.set_file(session, meta):
            blob.delete(path)
            raise ExpiredError
        self.store.touch(session, self._ttl)

        logger.info("file_uploaded", session_id=session.id, size=size, content_type=meta.content_type)
        return FileView.from_meta(meta)

    async def open_download(self, session_id: str, receiver_token: str | None) -> DownloadTransfer:
        """Prepare the receiver's download.

        Raises:
            NotFoundError: If the session is unknown or holds no file
            AuthenticationError: If the receiver token does not match
        """
        session = self.get_session(session_id)
        if not tokens.tokens_match(session.receiver_token, receiver_token):
            raise AuthenticationError
        meta = session.file
        if meta is None or not self.core.services.blob.exists(meta.storage_path):
            raise NotFoundError("No file")
        return DownloadTransfer(self, session, meta)

    async def finish_download(self, session: Session, meta: FileMeta) -> None:
        """Release the file after a completed transfer, honoring the configured grace delay."""
        delay = self.core.config.download_cleanup_delay_seconds
        if delay <= 0:
            self._release_downloaded(session, meta)
            return

        async def delayed() -> None:
            await asyncio.sleep(delay)
            self._release_downloaded(session, meta)

        task = asyncio.create_task(delayed())
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def render_qr(self, session_id: str, origin: str) -> bytes:
        session = self.get_session(session_id)
        return await self.core.services.qr.render(self.build_join_url(session, origin))

    def _release_downloaded(self, session: Session, meta: FileMeta) -> None:
        # A newer upload may have replaced the file in the meantime
        if session.file is meta:
            self.store.clear_file(session)
        self.core.services.blob.delete(meta.storage_path)
        if not session.is_closed:
            self.store.touch(session, self._ttl)
        logger.info("download_completed", session_id=session.id, size=meta.size)

    def _discard_file(self, session: Session) -> None:
        meta = self.store.clear_file(session)
        if meta is not None:
            self.core.services.blob.delete(meta.storage_path)

    def _join_as_sender(self, session: Session) -> SenderSession:
        self._ensure_open(session)
        self.store.mark_sender_seen(session)
        self.store.touch(session, self._ttl)
        logger.info("sender_connected", session_id=session.id)
        return SenderSession(
            session_id=session.id,
            sender_token=session.sender_token,
            expires_at=session.expires_at,
            heartbeat_interval=self.core.config.heartbeat_interval_seconds,
        )

    def _ensure_open(self, session: Session) -> None:
        if session.is_closed or session.is_expired(self.store.now()):
            raise ExpiredError

    def _origin(self, origin: str) -> str:
        return (self.core.config.public_origin or origin).rstrip("/")
