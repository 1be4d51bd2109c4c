"""
Core functionality for SwellGuard.

Settings, logging setup, exceptions and the signing/hashing helpers shared by
the auth components and the HTTP layer.
"""
import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .exceptions import CollaboratorError, CollaboratorTimeout

logger = logging.getLogger("swellguard")

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the ``swellguard`` logger namespace once."""
    root = logging.getLogger("swellguard")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper())


async def call_with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    *,
    name: str,
    context: Optional[dict] = None
) -> T:
    """Await a collaborator call, converting timeouts and crashes to CollaboratorError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"{name} timed out after {timeout}s")
        raise CollaboratorTimeout(
            f"{name} timed out after {timeout}s",
            context=context,
            original_exception=e
        )
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"{name} failed: {e}")
        raise CollaboratorError(
            f"{name} failed: {e}",
            context=context,
            original_exception=e
        )


from .config import Settings, get_settings  # noqa: E402
from .security import hash_secret, verify_secret  # noqa: E402

__all__ = [
    'Settings', 'get_settings', 'configure_logging', 'call_with_timeout',
    'hash_secret', 'verify_secret', 'logger'
]
