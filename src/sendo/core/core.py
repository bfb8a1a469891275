from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, cast

from sendo.config import Config
from sendo.core.modules.session.store import SessionStore
from sendo.utils import Clock, now

if TYPE_CHECKING:
    from sendo.core.modules.blob.service import BlobService
    from sendo.core.modules.qr.service import QrService
    from sendo.core.modules.session.service import SessionService
    from sendo.core.modules.sweeper.service import SweeperService


class Service:
    """Base class for services sharing the core context."""

    def __init__(self) -> None:
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    blob: BlobService
    qr: QrService
    session: SessionService
    sweeper: SweeperService

    def __init__(self) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []

        # Service configuration: (attribute_name, module_path, class_name)
        # Order matters: blob storage must be ready before sessions attach files,
        # and the sweeper starts last and stops first
        service_configs = [
            ("blob", "sendo.core.modules.blob.service", "BlobService"),
            ("qr", "sendo.core.modules.qr.service", "QrService"),
            ("session", "sendo.core.modules.session.service", "SessionService"),
            ("sweeper", "sendo.core.modules.sweeper.service", "SweeperService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class()
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, the session store, and all service instances."""

    config: Config
    store: SessionStore
    services: Services

    def __init__(self, config: Config, clock: Clock = now) -> None:
        """Initialize core with config, a fresh session store, and auto-register services."""
        self.config = config
        self.store = SessionStore(clock)
        self.services = Services()
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.services.start_all()

    async def on_stop(self) -> None:
        await self.services.stop_all()
