"""Detached (fire-and-forget) side effects.

A detached task is awaited by nobody on the caller's success path: its
failure is logged and swallowed here. Routers hand these to FastAPI
``BackgroundTasks`` so they run once the response (and the DB commit that
precedes it) is done.
"""

import logging
from typing import Any, Awaitable, Callable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

logger = logging.getLogger(__name__)


async def run_detached(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    label: str = "",
    **kwargs: Any,
) -> None:
    """Await ``func`` and log any failure instead of raising."""
    try:
        await func(*args, **kwargs)
    except Exception:
        logger.exception("Detached task failed: %s", label or getattr(func, "__name__", func))


async def stamp_best_effort(
    session: AsyncSession, obj: Any, field: str, value: Any,
) -> bool:
    """Set a bookkeeping column inside a savepoint; never fail the caller.

    The write goes through a Core UPDATE so a rolled-back savepoint leaves
    ``obj`` loaded. Returns True when the write landed.
    """
    model = type(obj)
    try:
        async with session.begin_nested():
            await session.execute(
                update(model)
                .where(model.id == obj.id)
                .values({field: value})
                .execution_options(synchronize_session=False)
            )
    except SQLAlchemyError:
        logger.warning(
            "Best-effort update of %s.%s failed",
            model.__name__, field, exc_info=True,
        )
        return False
    set_committed_value(obj, field, value)
    return True