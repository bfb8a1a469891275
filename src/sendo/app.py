from collections.abc import AsyncGenerator, AsyncIterable
from contextlib import asynccontextmanager
from datetime import datetime

from sendo.config import Config
from sendo.core.core import Core
from sendo.core.modules.session.models import FileView, ReceiverSession, Role, SenderSession, SessionStatusView
from sendo.core.modules.session.service import DownloadTransfer
from sendo.utils import Clock, now


class App:
    """Facade for all session lifecycle operations, delegating to Core services."""

    def __init__(self, config: Config, clock: Clock = now) -> None:
        self._core = Core(config, clock)

    @property
    def core(self) -> Core:
        return self._core

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def create_receiver_session(self, origin: str) -> ReceiverSession:
        """Open a session for a receiver (no authentication)."""
        return await self._core.services.session.create_receiver_session(origin)

    async def connect_sender(self, code: str | None, session_id: str | None) -> SenderSession:
        """Join as sender by short code or session ID."""
        return await self._core.services.session.connect_sender(code, session_id)

    async def join_via_qr(self, session_id: str, token: str | None) -> SenderSession:
        """Join as sender with the token embedded in the QR link."""
        return await self._core.services.session.join_via_qr(session_id, token)

    async def get_session_status(self, session_id: str) -> SessionStatusView:
        return await self._core.services.session.get_status(session_id)

    async def heartbeat(self, session_id: str, role: Role) -> datetime | None:
        return await self._core.services.session.heartbeat(session_id, role)

    async def disconnect(self, session_id: str, by: Role) -> None:
        await self._core.services.session.disconnect(session_id, by)

    async def upload_file(
        self,
        session_id: str,
        sender_token: str | None,
        filename: str | None,
        content_type: str | None,
        chunks: AsyncIterable[bytes] | None,
        declared_size: int | None = None,
    ) -> FileView:
        """Store the sender's file (sender token required)."""
        return await self._core.services.session.upload_file(
            session_id, sender_token, filename, content_type, chunks, declared_size
        )

    async def open_download(self, session_id: str, receiver_token: str | None) -> DownloadTransfer:
        """Prepare the receiver's one-time download (receiver token required)."""
        return await self._core.services.session.open_download(session_id, receiver_token)

    async def get_qr_png(self, session_id: str, origin: str) -> bytes:
        return await self._core.services.session.render_qr(session_id, origin)
