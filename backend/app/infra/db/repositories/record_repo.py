"""Generic keyed-record repository for the peripheral CRUD tables."""
import json
from typing import Any, Iterable, Type

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.types import utcnow
from app.infra.db.base import Base
from app.infra.db.models.catalog import (
    BannerModel,
    CouponModel,
    DeletionRequestModel,
    MenuItemModel,
    MenuItemOptionLinkModel,
    MenuOptionGroupModel,
    MenuOptionModel,
    SupportTicketModel,
    SystemConfigModel,
)
from app.infra.db.transitions import column_values, store_errors

TABLES: dict[str, Type[Base]] = {
    m.__tablename__: m
    for m in (
        CouponModel,
        MenuItemModel,
        MenuOptionGroupModel,
        MenuOptionModel,
        MenuItemOptionLinkModel,
        BannerModel,
        SupportTicketModel,
        SystemConfigModel,
        DeletionRequestModel,
    )
}


def check_columns(table: str, values: dict[str, Any]) -> dict[str, Any]:
    return column_values(TABLES[table], values)


def config_text(value: Any) -> str:
    """Render a JSON scalar the way the apps read system_config back: ``true``, ``5``, ``""`` for null."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def to_dict(model: Base) -> dict[str, Any]:
    return {c.name: getattr(model, c.name) for c in model.__table__.columns}


class RecordRepository:
    """Plain keyed CRUD over the tables in ``TABLES``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it with defaults filled in."""
        values = check_columns(table, values)
        model = TABLES[table](**values)
        async with store_errors(self.session):
            self.session.add(model)
            await self.session.commit()
        return to_dict(model)

    async def update(self, table: str, row_id: str, values: dict[str, Any]) -> int:
        """Patch one row by id; returns rows changed."""
        values = check_columns(table, values)
        if not values:
            return 0
        model_cls = TABLES[table]
        async with store_errors(self.session):
            result = await self.session.execute(
                update(model_cls)
                .where(model_cls.id == row_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount or 0

    async def delete_where(self, table: str, **filters: Any) -> int:
        """Delete rows matching every ``column=value`` filter."""
        filters = check_columns(table, filters)
        model_cls = TABLES[table]
        conditions = [getattr(model_cls, k) == v for k, v in filters.items()]
        async with store_errors(self.session):
            result = await self.session.execute(delete(model_cls).where(*conditions))
            await self.session.commit()
        return result.rowcount or 0

    async def upsert_config(self, items: Iterable[tuple[str, Any]]) -> int:
        """Upsert key/value rows into system_config; values are stored as text."""
        now = utcnow()
        count = 0
        async with store_errors(self.session):
            for key, value in items:
                existing = await self.session.get(SystemConfigModel, key)
                text = config_text(value)
                if existing is None:
                    self.session.add(SystemConfigModel(key=key, value=text, updated_at=now))
                else:
                    existing.value = text
                    existing.updated_at = now
                await self.session.commit()
                count += 1
        return count
