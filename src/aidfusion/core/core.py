from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast

from pymongo.asynchronous.database import AsyncDatabase

from aidfusion.config import Config
from aidfusion.core.db import MongoPool

if TYPE_CHECKING:
    from aidfusion.core.modules.access.service import AccessService
    from aidfusion.core.modules.session.service import SessionService
    from aidfusion.core.modules.two_factor.service import TwoFactorService
    from aidfusion.core.modules.user.service import UserService


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
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

    user: UserService
    session: SessionService
    access: AccessService
    two_factor: TwoFactorService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Order matters for initialization - user must be first (bootstrap admin)
        service_configs = [
            ("user", "aidfusion.core.modules.user.service", "UserService"),
            ("session", "aidfusion.core.modules.session.service", "SessionService"),
            ("access", "aidfusion.core.modules.access.service", "AccessService"),
            ("two_factor", "aidfusion.core.modules.two_factor.service", "TwoFactorService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, the injected connection pool, and all service instances."""

    config: Config
    pool: MongoPool
    database: AsyncDatabase[dict[str, Any]]
    services: Services

    def __init__(self, config: Config, pool: MongoPool) -> None:
        self.config = config
        self.pool = pool
        self.database = pool.database
        self.services = Services(self.database)
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
        """Open the pool, then start services (index creation, admin bootstrap)."""
        await self.pool.open()
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close the pool on shutdown."""
        await self.services.stop_all()
        await self.pool.close()
