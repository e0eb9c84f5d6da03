"""Guarded (expected-state) writes and store error translation.

The store gives us atomic single-row conditional updates and nothing more, so
every single-fire transition is written as ``UPDATE ... WHERE id = :id AND
<field> = :expected`` and judged by the affected row count.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import DateTime, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import UpstreamStoreError, ValidationError

logger = logging.getLogger(__name__)

_timestamp = TypeAdapter(datetime)


def store_error_message(exc: SQLAlchemyError) -> str:
    """Driver message when there is one, else the SQLAlchemy message."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def column_values(model: Any, values: dict[str, Any]) -> dict[str, Any]:
    """Check ``values`` against the columns of ``model`` and return them ready to bind.

    Unknown keys raise ValidationError. JSON bodies carry timestamps as ISO 8601
    strings, so string values for DateTime columns are parsed; naive ones are UTC.
    """
    columns = model.__table__.columns
    unknown = sorted(k for k in values if k not in columns)
    if unknown:
        raise ValidationError(f"Unknown field(s) for {model.__tablename__}: {', '.join(unknown)}")
    prepared = dict(values)
    for key, value in values.items():
        if not isinstance(value, str) or not isinstance(columns[key].type, DateTime):
            continue
        try:
            parsed = _timestamp.validate_python(value)
        except PydanticValidationError:
            raise ValidationError(f"Invalid '{key}': expected an ISO 8601 timestamp") from None
        prepared[key] = parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return prepared


@asynccontextmanager
async def store_errors(session: AsyncSession) -> AsyncIterator[None]:
    """Roll back and re-raise SQLAlchemy failures as UpstreamStoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        await session.rollback()
        raise UpstreamStoreError(store_error_message(e)) from e


async def guarded_update(
    session: AsyncSession,
    model: Any,
    row_id: Any,
    *,
    field: str,
    expected: Any,
    values: dict[str, Any],
    id_column: str = "id",
) -> bool:
    """Apply ``values`` to the row only if ``field`` still equals ``expected``.

    Returns True when exactly one row changed. False means the row is missing or
    was already moved out of the expected state by someone else.
    """
    column = getattr(model, field)
    predicate = column.is_(None) if expected is None else column == expected
    stmt = (
        update(model)
        .where(getattr(model, id_column) == row_id, predicate)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    async with store_errors(session):
        result = await session.execute(stmt)
        await session.commit()
    changed = result.rowcount == 1
    if not changed:
        logger.info(
            "Guarded update skipped: %s %s no longer has %s=%r",
            model.__tablename__, row_id, field, expected,
        )
    return changed
