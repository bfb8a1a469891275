"""Session lifecycle models."""

from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sendo.utils import now


class SessionStatus(StrEnum):
    """Session state. Moves only waiting -> connected -> closed or waiting -> closed."""

    WAITING = "waiting"
    CONNECTED = "connected"
    CLOSED = "closed"


class CloseReason(StrEnum):
    """Why a session was closed."""

    SENDER = "sender"
    RECEIVER = "receiver"
    TTL = "ttl"
    SENDER_GONE = "sender_gone"
    RECEIVER_GONE = "receiver_gone"


class Role(StrEnum):
    """Party of a session."""

    SENDER = "sender"
    RECEIVER = "receiver"


class FileMeta(BaseModel):
    """Metadata of the file currently held by a session."""

    name: str  # Original filename from the sender
    size: int  # File size in bytes
    content_type: str
    storage_path: Path  # Internal; never exposed to clients
    uploaded_at: datetime = Field(default_factory=now)


class Session(BaseModel):
    """Pairing between one receiver and one sender.

    Indexed by id and by code in SessionStore. Mutated only through the store.
    """

    id: str
    code: str
    receiver_token: str
    sender_token: str

    status: SessionStatus = SessionStatus.WAITING
    closed_by: CloseReason | None = None
    closed_at: datetime | None = None

    file: FileMeta | None = None

    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime | None = None  # None means no TTL

    last_seen_sender: datetime | None = None  # None means never seen
    last_seen_receiver: datetime | None = None
    sender_connected: bool = False

    @property
    def is_closed(self) -> bool:
        return self.status == SessionStatus.CLOSED

    def is_expired(self, at: datetime) -> bool:
        """Check if the TTL deadline has passed, regardless of sweeper progress."""
        return self.expires_at is not None and self.expires_at <= at


class WireModel(BaseModel):
    """Client-facing model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileView(WireModel):
    """Client-safe projection of FileMeta."""

    name: str
    size: int
    type: str

    @classmethod
    def from_meta(cls, meta: FileMeta) -> "FileView":
        return cls(name=meta.name, size=meta.size, type=meta.content_type)


class SessionStatusView(WireModel):
    """Read-only status projection polled by both parties."""

    closed: bool
    closed_by: CloseReason | None
    status: SessionStatus
    has_file: bool
    file: FileView | None
    expires_at: datetime | None
    seconds_left: int | None
    sender_connected: bool


class ReceiverSession(WireModel):
    """Result of creating a session on the receiver side."""

    session_id: str
    code: str
    receiver_token: str
    join_url: str
    qr_url: str
    expires_at: datetime | None
    heartbeat_interval: float


class SenderSession(WireModel):
    """Result of a sender joining a session."""

    session_id: str
    sender_token: str
    expires_at: datetime | None
    heartbeat_interval: float
