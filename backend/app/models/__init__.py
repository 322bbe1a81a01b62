from app.models.voucher import Voucher, VoucherRedemption, DiscountTypeEnum

__all__ = [
    "Voucher",
    "VoucherRedemption",
    "DiscountTypeEnum",
]
