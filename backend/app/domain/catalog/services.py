"""Peripheral CRUD: coupons, menus, tickets, banners, system config, deletion requests.

These are plain keyed records with no invariants beyond the option group links.
"""
import logging
from typing import Any, Iterable, Optional, Protocol

from app.domain.common.errors import UpstreamStoreError, ValidationError
from app.domain.common.types import Clock, utcnow

logger = logging.getLogger(__name__)

COUPONS = "coupons"
MENU_ITEMS = "menu_items"
MENU_OPTIONS = "menu_options"
OPTION_GROUPS = "menu_option_groups"
OPTION_LINKS = "menu_item_option_links"
TICKETS = "support_tickets"
BANNERS = "banners"
DELETION_REQUESTS = "deletion_requests"


class RecordStore(Protocol):
    async def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        ...

    async def update(self, table: str, row_id: str, values: dict[str, Any]) -> int:
        ...

    async def delete_where(self, table: str, **filters: Any) -> int:
        ...

    async def upsert_config(self, items: Iterable[tuple[str, Any]]) -> int:
        ...


class CatalogService:
    """Admin CRUD over the peripheral tables."""

    def __init__(self, records: RecordStore, clock: Optional[Clock] = None):
        self.records = records
        self.clock = clock or utcnow

    # Coupons

    async def create_coupon(self, coupon_data: dict[str, Any]) -> dict:
        coupon = await self.records.insert(COUPONS, coupon_data)
        return {"success": True, "coupon": coupon}

    async def update_coupon(self, coupon_id: str, update_data: dict[str, Any]) -> dict:
        await self.records.update(COUPONS, coupon_id, update_data)
        return {"success": True}

    async def toggle_coupon(self, coupon_id: str, is_active: bool) -> dict:
        await self.records.update(COUPONS, coupon_id, {"is_active": is_active})
        return {"success": True}

    async def delete_coupon(self, coupon_id: str) -> dict:
        await self.records.delete_where(COUPONS, id=coupon_id)
        return {"success": True}

    # Menu items and options

    async def create_menu_item(
        self, merchant_id: str, item_data: dict[str, Any], option_group_ids: Optional[list[str]] = None
    ) -> dict:
        """Create the item, then link the given option groups in order."""
        item = await self.records.insert(MENU_ITEMS, {**item_data, "merchant_id": merchant_id})
        for index, group_id in enumerate(option_group_ids or []):
            await self.records.insert(OPTION_LINKS, {
                "menu_item_id": item["id"],
                "option_group_id": group_id,
                "sort_order": index,
            })
        return {"success": True, "item": item}

    async def update_menu_item(self, item_id: str, update_data: dict[str, Any]) -> dict:
        await self.records.update(MENU_ITEMS, item_id, update_data)
        return {"success": True}

    async def delete_menu_item(self, item_id: str) -> dict:
        await self.records.delete_where(MENU_ITEMS, id=item_id)
        return {"success": True}

    async def create_menu_option(
        self, group_id: str, name: str, price: Optional[float] = None, is_available: Optional[bool] = None
    ) -> dict:
        option = await self.records.insert(MENU_OPTIONS, {
            "group_id": group_id,
            "name": name,
            "price": price or 0,
            "is_available": is_available is not False,
        })
        return {"success": True, "option": option}

    async def update_menu_option(self, option_id: str, update_data: dict[str, Any]) -> dict:
        await self.records.update(MENU_OPTIONS, option_id, update_data)
        return {"success": True}

    async def delete_menu_option(self, option_id: str) -> dict:
        await self.records.delete_where(MENU_OPTIONS, id=option_id)
        return {"success": True}

    async def _insert_group(
        self, merchant_id: str, name: str, min_selection: Optional[int], max_selection: Optional[int]
    ) -> dict[str, Any]:
        return await self.records.insert(OPTION_GROUPS, {
            "merchant_id": merchant_id,
            "name": name,
            "min_selection": min_selection or 0,
            "max_selection": max_selection or 1,
        })

    async def create_option_group(
        self, merchant_id: str, name: str, min_selection: Optional[int] = None, max_selection: Optional[int] = None
    ) -> dict:
        group = await self._insert_group(merchant_id, name, min_selection, max_selection)
        return {"success": True, "group": group}

    async def delete_option_group(self, group_id: str) -> dict:
        """Options and item links go first, then the group."""
        await self.records.delete_where(MENU_OPTIONS, group_id=group_id)
        await self.records.delete_where(OPTION_LINKS, option_group_id=group_id)
        await self.records.delete_where(OPTION_GROUPS, id=group_id)
        return {"success": True}

    async def create_option_group_and_link(
        self,
        merchant_id: str,
        menu_item_id: str,
        name: str,
        min_selection: Optional[int] = None,
        max_selection: Optional[int] = None,
    ) -> dict:
        group = await self._insert_group(merchant_id, name, min_selection, max_selection)
        await self.records.insert(OPTION_LINKS, {
            "menu_item_id": menu_item_id,
            "option_group_id": group["id"],
            "sort_order": 0,
        })
        return {"success": True, "group": group}

    async def toggle_link_group(self, menu_item_id: str, option_group_id: str, link: bool) -> dict:
        if link:
            await self.records.insert(OPTION_LINKS, {
                "menu_item_id": menu_item_id,
                "option_group_id": option_group_id,
                "sort_order": 0,
            })
        else:
            await self.unlink_option_group(menu_item_id, option_group_id)
        return {"success": True}

    async def unlink_option_group(self, menu_item_id: str, option_group_id: str) -> dict:
        await self.records.delete_where(
            OPTION_LINKS, menu_item_id=menu_item_id, option_group_id=option_group_id
        )
        return {"success": True}

    # Support tickets

    async def update_ticket_status(self, ticket_id: str, status: str) -> dict:
        await self.records.update(TICKETS, ticket_id, {"status": status, "updated_at": self.clock()})
        return {"success": True}

    async def resolve_ticket(self, ticket_id: str, resolution: str) -> dict:
        now = self.clock()
        await self.records.update(TICKETS, ticket_id, {
            "status": "resolved",
            "resolution": resolution,
            "resolved_at": now,
            "updated_at": now,
        })
        return {"success": True}

    # Banners

    async def create_banner(self, banner_data: dict[str, Any]) -> dict:
        """Insert the banner; payloads naming unknown columns fall back to the minimal column set."""
        try:
            banner = await self.records.insert(BANNERS, banner_data)
        except ValidationError as e:
            logger.info("Banner payload rejected (%s), retrying with minimal fields", e.message)
            banner = await self.records.insert(BANNERS, {
                "title": banner_data.get("title") or "Banner",
                "image_url": banner_data.get("image_url"),
                "is_active": True,
                "sort_order": 0,
            })
        return {"success": True, "banner": banner}

    async def toggle_banner(self, banner_id: str, is_active: bool) -> dict:
        await self.records.update(BANNERS, banner_id, {"is_active": is_active})
        return {"success": True}

    async def delete_banner(self, banner_id: str) -> dict:
        await self.records.delete_where(BANNERS, id=banner_id)
        return {"success": True}

    # System config

    async def upsert_system_config(self, config: dict[str, Any]) -> dict:
        await self.records.upsert_config(config.items())
        return {"success": True}

    async def upsert_system_config_kv(self, rows: list[dict[str, Any]]) -> dict:
        """Upsert ``{key, value}`` rows one by one; rows without a key are skipped."""
        for row in rows:
            key = row.get("key")
            if not key:
                continue
            try:
                await self.records.upsert_config([(key, row.get("value"))])
            except UpstreamStoreError as e:
                raise UpstreamStoreError(f"Failed to upsert '{key}': {e.message}") from e
        return {"success": True}

    # Account deletion requests

    async def approve_account_deletion(self, request_id: str) -> dict:
        now = self.clock()
        await self.records.update(DELETION_REQUESTS, request_id, {
            "status": "approved",
            "processed_at": now,
            "updated_at": now,
        })
        return {"success": True}

    async def reject_account_deletion(self, request_id: str, reason: Optional[str] = None) -> dict:
        now = self.clock()
        await self.records.update(DELETION_REQUESTS, request_id, {
            "status": "rejected",
            "admin_note": reason or "",
            "processed_at": now,
            "updated_at": now,
        })
        return {"success": True}
