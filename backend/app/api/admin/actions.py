"""Admin action registry.

Every action is a ``kind`` mapped to a payload model and a handler
``async (ctx, payload) -> dict``. The set of kinds is closed: anything not in
``ACTIONS`` is rejected before the store is touched.
"""
import logging
from typing import Annotated, Any, Awaitable, Callable, NamedTuple, Optional, Type

import pydantic
from pydantic import BaseModel, ConfigDict, StringConstraints, model_validator

from app.api.deps import AdminContext
from app.domain.common.errors import DomainError, UpstreamStoreError, ValidationError

logger = logging.getLogger(__name__)

# Present and non-empty
Required = Annotated[str, StringConstraints(min_length=1)]
Money = Annotated[float, pydantic.Field(allow_inf_nan=False)]

Handler = Callable[[AdminContext, Any], Awaitable[dict]]


class Action(NamedTuple):
    payload: Type[BaseModel]
    handler: Handler


ACTIONS: dict[str, Action] = {}


def action(*kinds: str, payload: Type[BaseModel]):
    """Register ``handler`` under each of ``kinds``."""

    def register(handler: Handler) -> Handler:
        for kind in kinds:
            if kind in ACTIONS:
                raise RuntimeError(f"Duplicate admin action: {kind}")
            ACTIONS[kind] = Action(payload, handler)
        return handler

    return register


class Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


def payload_error_message(exc: pydantic.ValidationError) -> str:
    """First validation error as ``Missing '<field>'`` / ``Invalid '<field>'``."""
    error = exc.errors()[0]
    if not error.get("loc"):
        # Whole-payload validators carry their own message
        cause = (error.get("ctx") or {}).get("error")
        return str(cause) if cause else error.get("msg", "Invalid request body")
    field = ".".join(str(p) for p in error["loc"])
    if error.get("type") in ("missing", "string_too_short", "too_short"):
        return f"Missing '{field}'"
    return f"Invalid '{field}': {error.get('msg')}"


async def dispatch(ctx: AdminContext, kind: str, body: dict[str, Any]) -> dict:
    """Validate ``body`` for ``kind`` and run its handler."""
    entry = ACTIONS.get(kind)
    if entry is None:
        raise ValidationError(f"Unknown action: {kind}")
    try:
        payload = entry.payload.model_validate(body)
    except pydantic.ValidationError as e:
        raise ValidationError(payload_error_message(e)) from e
    try:
        return await entry.handler(ctx, payload)
    except DomainError as e:
        if e.status_code >= 500:
            logger.error("admin-actions error [%s]: %s", kind, e.message)
        raise
    except Exception as e:
        logger.exception("admin-actions error [%s]", kind)
        raise UpstreamStoreError(str(e) or "Internal error") from e


# ─── Payloads ──────────────────────────────────────────


class IdPayload(Payload):
    id: Required


class IdReasonPayload(Payload):
    id: Required
    reason: Required


class IdOptionalReasonPayload(Payload):
    id: Required
    reason: Optional[str] = None


class SetOnlineStatusPayload(Payload):
    id: Required
    is_online: bool = False
    role: Optional[str] = None


class EditProfilePayload(Payload):
    id: Required
    update_data: dict[str, Any]


class EditMerchantPayload(EditProfilePayload):
    system_config_updates: Optional[dict[str, Any]] = None


class AddUserPayload(Payload):
    email: Required
    password: Required
    profile_data: Optional[dict[str, Any]] = None


class ApproveWithdrawalPayload(Payload):
    id: Required
    transfer_slip_url: Optional[str] = None


class ApproveTopupPayload(Payload):
    id: Required
    user_id: Optional[str] = None
    amount: Optional[Money] = None


class AssignOrderPayload(Payload):
    order_id: Required
    driver_id: Required


class ReassignOrderPayload(Payload):
    order_id: Required
    new_driver_id: Required
    update_fields: Optional[dict[str, Any]] = None


class CancelOrderPayload(Payload):
    order_id: Required
    reason: Optional[str] = None


class ForceCancelOrderPayload(Payload):
    order_id: Required
    customer_id: Optional[str] = None
    price: Optional[Money] = None
    reason: Optional[str] = None
    do_refund: bool = False
    idempotency_key: Optional[str] = None


class RebroadcastOrderPayload(Payload):
    order_id: Required
    service_type: Optional[str] = None


class WalletAdjustPayload(Payload):
    user_id: Required
    amount: Money
    reason: Optional[str] = None
    idempotency_key: Optional[str] = None


class ManualTopupPayload(Payload):
    user_id: Required
    amount: Money
    description: Optional[str] = None
    idempotency_key: Optional[str] = None


class SystemConfigPayload(Payload):
    config_data: Optional[dict[str, Any]] = None
    config: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def _one_of(self):
        if not (self.config_data or self.config):
            raise ValueError("Missing 'config_data' object")
        return self

    @property
    def values(self) -> dict[str, Any]:
        return self.config_data or self.config or {}


class SystemConfigKVPayload(Payload):
    rows: Annotated[list[dict[str, Any]], pydantic.Field(min_length=1)]


class CreateCouponPayload(Payload):
    coupon_data: dict[str, Any]


class UpdateRecordPayload(Payload):
    id: Required
    update_data: dict[str, Any]


class ToggleActivePayload(Payload):
    id: Required
    is_active: bool


class CreateMenuItemPayload(Payload):
    merchant_id: Required
    item_data: dict[str, Any]
    option_group_ids: Optional[list[str]] = None


class CreateMenuOptionPayload(Payload):
    group_id: Required
    name: Required
    price: Optional[Money] = None
    is_available: Optional[bool] = None


class CreateOptionGroupPayload(Payload):
    merchant_id: Required
    name: Required
    min_selection: Optional[int] = None
    max_selection: Optional[int] = None


class CreateOptionGroupAndLinkPayload(CreateOptionGroupPayload):
    menu_item_id: Required


class OptionLinkPayload(Payload):
    menu_item_id: Required
    option_group_id: Required


class ToggleLinkPayload(OptionLinkPayload):
    link: bool = False


class TicketStatusPayload(Payload):
    id: Required
    status: Required


class ResolveTicketPayload(Payload):
    id: Required
    resolution: Required


class CreateBannerPayload(Payload):
    banner_data: dict[str, Any]


class EmptyPayload(Payload):
    pass


# ─── Accounts ──────────────────────────────────────────


@action("approve_driver", payload=IdPayload)
async def approve_driver(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.accounts.approve(p.id, "driver")


@action("approve_merchant", payload=IdPayload)
async def approve_merchant(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.accounts.approve(p.id, "merchant")


@action("reject_driver", payload=IdReasonPayload)
async def reject_driver(ctx: AdminContext, p: IdReasonPayload) -> dict:
    return await ctx.accounts.reject(p.id, "driver", p.reason)


@action("reject_merchant", payload=IdReasonPayload)
async def reject_merchant(ctx: AdminContext, p: IdReasonPayload) -> dict:
    return await ctx.accounts.reject(p.id, "merchant", p.reason)


@action("suspend_user", payload=IdReasonPayload)
async def suspend_user(ctx: AdminContext, p: IdReasonPayload) -> dict:
    return await ctx.accounts.suspend(p.id, p.reason)


@action("unsuspend_user", payload=IdPayload)
async def unsuspend_user(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.accounts.unsuspend(p.id)


@action("delete_user", payload=IdPayload)
async def delete_user(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.accounts.delete_user(p.id)


@action("set_online_status", payload=SetOnlineStatusPayload)
async def set_online_status(ctx: AdminContext, p: SetOnlineStatusPayload) -> dict:
    return await ctx.accounts.set_online_status(p.id, p.is_online, p.role)


@action("edit_driver", payload=EditProfilePayload)
async def edit_driver(ctx: AdminContext, p: EditProfilePayload) -> dict:
    return await ctx.accounts.edit_profile(p.id, p.update_data)


@action("edit_merchant", payload=EditMerchantPayload)
async def edit_merchant(ctx: AdminContext, p: EditMerchantPayload) -> dict:
    return await ctx.accounts.edit_profile(p.id, p.update_data, p.system_config_updates)


@action("add_driver", payload=AddUserPayload)
async def add_driver(ctx: AdminContext, p: AddUserPayload) -> dict:
    return await ctx.accounts.add_user(p.email, p.password, "driver", p.profile_data)


@action("add_merchant", payload=AddUserPayload)
async def add_merchant(ctx: AdminContext, p: AddUserPayload) -> dict:
    return await ctx.accounts.add_user(p.email, p.password, "merchant", p.profile_data)


@action("fetch_user_emails", payload=EmptyPayload)
async def fetch_user_emails(ctx: AdminContext, p: EmptyPayload) -> dict:
    return await ctx.accounts.fetch_user_emails()


# ─── Withdrawals / topups ──────────────────────────────


@action("approve_withdrawal", "approve_withdrawal_with_slip", payload=ApproveWithdrawalPayload)
async def approve_withdrawal(ctx: AdminContext, p: ApproveWithdrawalPayload) -> dict:
    return await ctx.payments.approve_withdrawal(p.id, p.transfer_slip_url)


@action("reject_withdrawal", payload=IdReasonPayload)
async def reject_withdrawal(ctx: AdminContext, p: IdReasonPayload) -> dict:
    return await ctx.payments.reject_withdrawal(p.id, p.reason)


@action("approve_topup", payload=ApproveTopupPayload)
async def approve_topup(ctx: AdminContext, p: ApproveTopupPayload) -> dict:
    return await ctx.payments.approve_topup(p.id, p.user_id, p.amount)


@action("reject_topup", payload=IdOptionalReasonPayload)
async def reject_topup(ctx: AdminContext, p: IdOptionalReasonPayload) -> dict:
    return await ctx.payments.reject_topup(p.id, p.reason)


# ─── Orders ────────────────────────────────────────────


@action("assign_order", payload=AssignOrderPayload)
async def assign_order(ctx: AdminContext, p: AssignOrderPayload) -> dict:
    return await ctx.orders.assign(p.order_id, p.driver_id)


@action("reassign_order", payload=ReassignOrderPayload)
async def reassign_order(ctx: AdminContext, p: ReassignOrderPayload) -> dict:
    return await ctx.orders.reassign(p.order_id, p.new_driver_id, p.update_fields)


@action("cancel_order", payload=CancelOrderPayload)
async def cancel_order(ctx: AdminContext, p: CancelOrderPayload) -> dict:
    return await ctx.orders.cancel(p.order_id, p.reason)


@action("force_cancel_order", payload=ForceCancelOrderPayload)
async def force_cancel_order(ctx: AdminContext, p: ForceCancelOrderPayload) -> dict:
    return await ctx.orders.force_cancel(
        p.order_id,
        customer_id=p.customer_id,
        price=p.price,
        reason=p.reason,
        do_refund=p.do_refund,
        idempotency_key=p.idempotency_key,
    )


@action("rebroadcast_order", payload=RebroadcastOrderPayload)
async def rebroadcast_order(ctx: AdminContext, p: RebroadcastOrderPayload) -> dict:
    return await ctx.orders.rebroadcast(p.order_id, p.service_type)


# ─── Wallet ────────────────────────────────────────────


@action("wallet_adjust", payload=WalletAdjustPayload)
async def wallet_adjust(ctx: AdminContext, p: WalletAdjustPayload) -> dict:
    return await ctx.wallets.adjust(p.user_id, p.amount, p.reason, p.idempotency_key)


@action("manual_topup", payload=ManualTopupPayload)
async def manual_topup(ctx: AdminContext, p: ManualTopupPayload) -> dict:
    return await ctx.wallets.manual_topup(p.user_id, p.amount, p.description, p.idempotency_key)


# ─── System config / deletion requests ─────────────────


@action("upsert_system_config", payload=SystemConfigPayload)
async def upsert_system_config(ctx: AdminContext, p: SystemConfigPayload) -> dict:
    return await ctx.catalog.upsert_system_config(p.values)


@action("upsert_system_config_kv", payload=SystemConfigKVPayload)
async def upsert_system_config_kv(ctx: AdminContext, p: SystemConfigKVPayload) -> dict:
    return await ctx.catalog.upsert_system_config_kv(p.rows)


@action("approve_account_deletion", payload=IdPayload)
async def approve_account_deletion(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.catalog.approve_account_deletion(p.id)


@action("reject_account_deletion", payload=IdOptionalReasonPayload)
async def reject_account_deletion(ctx: AdminContext, p: IdOptionalReasonPayload) -> dict:
    return await ctx.catalog.reject_account_deletion(p.id, p.reason)


# ─── Coupons ───────────────────────────────────────────


@action("create_coupon", payload=CreateCouponPayload)
async def create_coupon(ctx: AdminContext, p: CreateCouponPayload) -> dict:
    return await ctx.catalog.create_coupon(p.coupon_data)


@action("update_coupon", payload=UpdateRecordPayload)
async def update_coupon(ctx: AdminContext, p: UpdateRecordPayload) -> dict:
    return await ctx.catalog.update_coupon(p.id, p.update_data)


@action("toggle_coupon", payload=ToggleActivePayload)
async def toggle_coupon(ctx: AdminContext, p: ToggleActivePayload) -> dict:
    return await ctx.catalog.toggle_coupon(p.id, p.is_active)


@action("delete_coupon", payload=IdPayload)
async def delete_coupon(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.catalog.delete_coupon(p.id)


# ─── Menu ──────────────────────────────────────────────


@action("create_menu_item", payload=CreateMenuItemPayload)
async def create_menu_item(ctx: AdminContext, p: CreateMenuItemPayload) -> dict:
    return await ctx.catalog.create_menu_item(p.merchant_id, p.item_data, p.option_group_ids)


@action("update_menu_item", payload=UpdateRecordPayload)
async def update_menu_item(ctx: AdminContext, p: UpdateRecordPayload) -> dict:
    return await ctx.catalog.update_menu_item(p.id, p.update_data)


@action("delete_menu_item", payload=IdPayload)
async def delete_menu_item(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.catalog.delete_menu_item(p.id)


@action("create_menu_option", payload=CreateMenuOptionPayload)
async def create_menu_option(ctx: AdminContext, p: CreateMenuOptionPayload) -> dict:
    return await ctx.catalog.create_menu_option(p.group_id, p.name, p.price, p.is_available)


@action("update_menu_option", payload=UpdateRecordPayload)
async def update_menu_option(ctx: AdminContext, p: UpdateRecordPayload) -> dict:
    return await ctx.catalog.update_menu_option(p.id, p.update_data)


@action("delete_menu_option", payload=IdPayload)
async def delete_menu_option(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.catalog.delete_menu_option(p.id)


@action("create_menu_option_group", payload=CreateOptionGroupPayload)
async def create_menu_option_group(ctx: AdminContext, p: CreateOptionGroupPayload) -> dict:
    return await ctx.catalog.create_option_group(p.merchant_id, p.name, p.min_selection, p.max_selection)


@action("delete_option_group", payload=IdPayload)
async def delete_option_group(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.catalog.delete_option_group(p.id)


@action("create_option_group_and_link", payload=CreateOptionGroupAndLinkPayload)
async def create_option_group_and_link(ctx: AdminContext, p: CreateOptionGroupAndLinkPayload) -> dict:
    return await ctx.catalog.create_option_group_and_link(
        p.merchant_id, p.menu_item_id, p.name, p.min_selection, p.max_selection
    )


@action("toggle_link_group", payload=ToggleLinkPayload)
async def toggle_link_group(ctx: AdminContext, p: ToggleLinkPayload) -> dict:
    return await ctx.catalog.toggle_link_group(p.menu_item_id, p.option_group_id, p.link)


@action("unlink_option_group", payload=OptionLinkPayload)
async def unlink_option_group(ctx: AdminContext, p: OptionLinkPayload) -> dict:
    return await ctx.catalog.unlink_option_group(p.menu_item_id, p.option_group_id)


# ─── Support tickets ───────────────────────────────────


@action("update_ticket_status", payload=TicketStatusPayload)
async def update_ticket_status(ctx: AdminContext, p: TicketStatusPayload) -> dict:
    return await ctx.catalog.update_ticket_status(p.id, p.status)


@action("resolve_ticket", payload=ResolveTicketPayload)
async def resolve_ticket(ctx: AdminContext, p: ResolveTicketPayload) -> dict:
    return await ctx.catalog.resolve_ticket(p.id, p.resolution)


# ─── Banners ───────────────────────────────────────────


@action("create_banner", payload=CreateBannerPayload)
async def create_banner(ctx: AdminContext, p: CreateBannerPayload) -> dict:
    return await ctx.catalog.create_banner(p.banner_data)


@action("toggle_banner", payload=ToggleActivePayload)
async def toggle_banner(ctx: AdminContext, p: ToggleActivePayload) -> dict:
    return await ctx.catalog.toggle_banner(p.id, p.is_active)


@action("delete_banner", payload=IdPayload)
async def delete_banner(ctx: AdminContext, p: IdPayload) -> dict:
    return await ctx.catalog.delete_banner(p.id)
