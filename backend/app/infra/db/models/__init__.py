"""Database models."""
from app.infra.db.models.profile import ProfileModel, DriverLocationModel
from app.infra.db.models.wallet import (
    WalletModel,
    WalletTransactionModel,
    LedgerIdempotencyKeyModel,
    WithdrawalRequestModel,
    TopupRequestModel,
)
from app.infra.db.models.booking import BookingModel
from app.infra.db.models.notification import NotificationModel
from app.infra.db.models.catalog import (
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

__all__ = [
    "ProfileModel",
    "DriverLocationModel",
    "WalletModel",
    "WalletTransactionModel",
    "LedgerIdempotencyKeyModel",
    "WithdrawalRequestModel",
    "TopupRequestModel",
    "BookingModel",
    "NotificationModel",
    "CouponModel",
    "MenuItemModel",
    "MenuOptionGroupModel",
    "MenuOptionModel",
    "MenuItemOptionLinkModel",
    "BannerModel",
    "SupportTicketModel",
    "SystemConfigModel",
    "DeletionRequestModel",
]
