"""
Database decorators for automatic error handling and rollback.

Service methods that change financial or graph state are wrapped so a
failure anywhere inside leaves nothing half-written.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    """Locate the session: `session` kwarg, first positional arg, or `self.session`."""
    session = kwargs.get("session")
    if session is None and args:
        first = args[0]
        if isinstance(first, AsyncSession):
            session = first
        else:
            candidate = getattr(first, "session", None)
            if isinstance(candidate, AsyncSession):
                session = candidate
    return session


def with_rollback_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that automatically rolls back the session on any exception.

    Works on plain functions taking a session and on service methods whose
    instance carries `self.session`. The original exception is re-raised.

    Example:
        @with_rollback_on_error
        async def create_request(self, user_id: str, amount: Decimal):
            ...
            await self.session.commit()
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)

        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_rollback_on_error "
                f"but no session argument found. Rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            try:
                await session.rollback()
                logger.info(
                    f"Rollback performed in {func.__name__} due to error: {type(e).__name__}"
                )
            except Exception as rollback_error:
                logger.error(
                    f"Failed to rollback in {func.__name__}: {rollback_error}",
                    exc_info=True
                )
            raise

    return wrapper


def with_auto_commit(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that commits the session on success and rolls back on error.

    Example:
        @with_auto_commit
        async def update_settings(self, admin_id: str, update: SystemSettingsUpdate):
            settings_row.sponsor_commission_percentage = update.sponsor_commission_percentage
            # Commit happens automatically
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)

        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_auto_commit "
                f"but no session argument found. Commit/rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            result = await func(*args, **kwargs)
            await session.commit()
            logger.debug(f"Auto-commit performed in {func.__name__}")
            return result
        except Exception as e:
            try:
                await session.rollback()
                logger.info(
                    f"Rollback performed in {func.__name__} due to error: {type(e).__name__}"
                )
            except Exception as rollback_error:
                logger.error(
                    f"Failed to rollback in {func.__name__}: {rollback_error}",
                    exc_info=True
                )
            raise

    return wrapper
