#main __init__.py
"""
SwellGuard - administrative authentication and session security on FastAPI.

Multi-factor admin login, sliding-timeout sessions, fixed-window rate
limiting, lockout tracking, role-based permissions, break-glass access and a
tamper-evident audit trail.
"""

__version__ = "0.1.0"

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api import router as api_router
from .context import SecurityContext, build_security_context
from .core import configure_logging
from .core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: "SwellGuardAPI"):
    await app.on_startup()
    try:
        yield
    finally:
        await app.on_shutdown()


class SwellGuardAPI(FastAPI):
    """FastAPI application that owns one SecurityContext."""

    def __init__(self, *args, security: SecurityContext, **kwargs):
        super().__init__(*args, lifespan=_lifespan, **kwargs)
        self.logger = logging.getLogger(__name__)
        self.state.security = security
        self._setup()

    @property
    def security(self) -> SecurityContext:
        return self.state.security

    def _setup(self):
        """Set up routes."""
        self.include_router(api_router)

        @self.get("/health", tags=["health"])
        async def health_check():
            """Liveness and audit sink status."""
            security = self.security
            health_status = {
                "status": "ok",
                "audit_sink": security.settings.AUDIT_SINK,
                "buffered_events": len(security.audit.fallback_events()),
                "sweeper": "running" if security.sweeper.running else "stopped",
            }
            if security.database is not None:
                connected = await security.database.health_check()
                health_status["database"] = "connected" if connected else "disconnected"
            return health_status

    async def on_startup(self):
        """Bring up the audit chain, the database and the sweep task."""
        self.logger.info(f"Starting up {self.title}...")
        try:
            await self.security.startup()
        except Exception as e:
            self.logger.error(f"Error during startup: {e}")
            raise

    async def on_shutdown(self):
        self.logger.info(f"Shutting down {self.title}...")
        try:
            await self.security.shutdown()
            self.logger.info("Shutdown complete")
        except Exception as e:
            self.logger.error(f"Error during application shutdown: {e}", exc_info=True)


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[SecurityContext] = None,
    **kwargs
) -> SwellGuardAPI:
    """
    Create and configure the SwellGuard application.

    Args:
        settings: Settings to use; defaults to the cached environment settings.
        context: Prebuilt security components, e.g. with injected collaborators.
        **kwargs: Additional keyword arguments to pass to the FastAPI constructor.

    Returns:
        SwellGuardAPI: The configured application instance.
    """
    if context is not None:
        settings = context.settings
    settings = settings or get_settings()
    configure_logging("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)

    try:
        logger.info(f"Creating {settings.APP_NAME} application (version: {__version__})")
        if context is None:
            context = build_security_context(settings)

        app = SwellGuardAPI(
            title=settings.APP_NAME,
            version=__version__,
            debug=settings.DEBUG,
            security=context,
            **kwargs
        )
        logger.info("Application initialization complete")
        return app

    except Exception as e:
        logger.critical(f"Failed to create application: {e}", exc_info=True)
        raise


__all__ = ['SwellGuardAPI', 'create_app', 'SecurityContext', 'build_security_context', 'Settings', 'get_settings']
