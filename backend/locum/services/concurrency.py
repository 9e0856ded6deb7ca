"""
Concurrency coordinator.

Every status change is committed as a single conditional UPDATE keyed by
(id, expected current status). The store is the serialization point: if
another actor moved the row first, zero rows match and the caller gets
StaleState with the state that actually won.
"""
import functools
import logging
from typing import Any, Dict, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from locum.services.errors import (
    CascadeConflict,
    LifecycleError,
    NotFound,
    StaleState,
)

logger = logging.getLogger(__name__)


async def read_status(db: AsyncSession, model, entity_id: UUID) -> Optional[str]:
    """Fresh read of a row's status, bypassing the session identity map."""
    result = await db.execute(select(model.status).where(model.id == entity_id))
    return result.scalar_one_or_none()


async def conditional_update(
    db: AsyncSession,
    model,
    entity_id: UUID,
    expected_state: str,
    values: Dict[str, Any],
    extra_conditions: Sequence[Any] = (),
) -> None:
    """
    Apply ``values`` only if the row is still in ``expected_state``.
    
    Args:
        db: Database session (the caller owns commit/rollback)
        model: Mapped class with ``id`` and ``status`` columns
        entity_id: Primary key of the row
        expected_state: Status the caller observed before deciding
        values: Column values to write
        extra_conditions: Additional WHERE clauses evaluated at commit time
    
    Raises:
        StaleState: The row moved (or an extra condition failed)
        NotFound: The row no longer exists
    """
    stmt = (
        update(model)
        .where(model.id == entity_id, model.status == expected_state, *extra_conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    
    if result.rowcount == 1:
        return
    
    current = await read_status(db, model, entity_id)
    if current is None:
        raise NotFound(f"{model.__name__} {entity_id} not found")
    
    logger.info(
        f"Conditional update lost: {model.__name__} {entity_id} expected {expected_state}, found {current}",
        extra={"entity_id": str(entity_id), "expected_state": expected_state, "current_state": current},
    )
    raise StaleState(
        f"{model.__name__} {entity_id} is in state {current}, expected {expected_state}",
        current_state=current,
    )


async def cascade_update(
    db: AsyncSession,
    model,
    child_ids: Iterable[UUID],
    expected_state: str,
    values: Dict[str, Any],
) -> int:
    """
    Conditionally update every child inside the caller's transaction.
    
    A single child failing aborts the whole unit: the caller must roll back.
    Partial cascades are an inconsistency, so they are logged at ERROR and
    never retried here.
    """
    updated = 0
    for child_id in child_ids:
        try:
            await conditional_update(db, model, child_id, expected_state, values)
        except StaleState as exc:
            logger.error(
                f"Cascade aborted on {model.__name__} {child_id}: {exc.message}",
                extra={"entity_id": str(child_id), "updated_before_failure": updated},
            )
            raise CascadeConflict(
                f"Cascade aborted: {model.__name__} {child_id} is in state {exc.current_state}",
                current_state=exc.current_state,
            ) from exc
        updated += 1
    return updated


def returns_outcome(func):
    """
    Commit boundary for public lifecycle operations.
    
    Converts any LifecycleError raised inside the operation into a Rejected
    value after rolling back the session, so nothing from the engine leaks
    to the caller as an exception.
    """
    @functools.wraps(func)
    async def wrapper(db: AsyncSession, *args, **kwargs):
        try:
            return await func(db, *args, **kwargs)
        except LifecycleError as exc:
            await db.rollback()
            rejection = exc.to_rejection()
            logger.info(
                f"{func.__name__} rejected: {rejection.code.value} - {rejection.message}",
                extra={"operation": func.__name__, "code": rejection.code.value},
            )
            return rejection
    return wrapper
