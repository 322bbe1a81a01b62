from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.core.database import Base


class DiscountTypeEnum(str, enum.Enum):
    PERCENTAGE = "percentage"   # value is 1-100
    FIXED = "fixed"             # value is an amount in VND


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)  # stored upper-cased, e.g. YUMIN10
    description = Column(Text, nullable=True)
    discount_type = Column(
        SQLEnum(DiscountTypeEnum, values_callable=lambda x: [e.value for e in x], native_enum=False),
        nullable=False,
    )
    discount_value = Column(Integer, nullable=False)  # percent (1-100) or fixed amount in VND
    max_discount_amount = Column(Integer, nullable=True)  # cap for percentage vouchers, None = no cap
    minimum_order_value = Column(Integer, default=0, nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)
    usage_limit = Column(Integer, nullable=False)
    used_count = Column(Integer, default=0, nullable=False)
    # {"all": bool, "new": bool, "specific": [user ids], "levels": [tiers]}; NULL = everyone
    applicable_user_groups = Column(JSON, nullable=True)
    applicable_products = Column(JSON, nullable=False, default=list)  # empty = every product
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    redemptions = relationship("VoucherRedemption", back_populates="voucher", cascade="all, delete-orphan")


class VoucherRedemption(Base):
    __tablename__ = "voucher_redemptions"
    __table_args__ = (
        # one redemption per shopper and voucher; anonymous rows (NULL user_id) are not limited
        Index("uq_voucher_redemptions_voucher_user", "voucher_id", "user_id", unique=True),
    )

    id = Column(Integer, primary_key=True, index=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    order_value = Column(Integer, nullable=False)
    discount_amount = Column(Integer, nullable=False)
    final_amount = Column(Integer, nullable=False)
    redeemed_at = Column(DateTime(timezone=True), server_default=func.now())

    voucher = relationship("Voucher", back_populates="redemptions")
