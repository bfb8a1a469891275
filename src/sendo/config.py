from typing import Self

from pydantic import model_validator
from pydantic_settings import BaseSettings

DEFAULT_ALLOWED_EXTENSIONS = [".epub", ".mobi", ".azw", ".azw3", ".pdf", ".txt"]


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3001
    debug: bool = False
    cors_origins: list[str] = ["*"]
    public_origin: str | None = None  # Fixed origin for join/QR URLs, e.g. https://sendo.app
    blobs_path: str = "./tmp/blobs"  # Directory for uploaded files, one subdirectory per session

    session_ttl_seconds: int = 300  # Sliding TTL; 0 or negative disables expiry
    max_file_mb: int = 100
    allowed_extensions: list[str] = DEFAULT_ALLOWED_EXTENSIONS

    # Liveness. Clients heartbeat every heartbeat_interval_seconds; a role silent
    # for longer than its *_gone_seconds is reclaimed by the sweeper.
    sender_gone_seconds: float = 30
    receiver_gone_seconds: float = 30
    heartbeat_interval_seconds: float = 10

    sweep_interval_seconds: float = 5
    tombstone_retention_seconds: float = 120  # Closed sessions stay readable this long

    download_chunk_size: int = 64 * 1024
    download_cleanup_delay_seconds: float = 0  # Grace period before deleting downloaded bytes

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SENDO_",
        "extra": "ignore",
    }

    @property
    def max_file_bytes(self) -> int:
        return self.max_file_mb * 1024 * 1024

    @model_validator(mode="after")
    def check_heartbeat_margin(self) -> Self:
        """Heartbeats must arrive at least twice per liveness window to tolerate jitter."""
        threshold = min(self.sender_gone_seconds, self.receiver_gone_seconds)
        if self.heartbeat_interval_seconds <= 0 or self.heartbeat_interval_seconds * 2 > threshold:
            raise ValueError(
                f"heartbeat_interval_seconds ({self.heartbeat_interval_seconds}) must be positive "
                f"and at most half of the liveness thresholds ({threshold})"
            )
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        return self
