from pydantic import BaseModel, field_validator
from typing import Any, List, Optional
from datetime import datetime

from app.core.validators import ensure_utc
from app.models.voucher import DiscountTypeEnum


class ApplicableUserGroups(BaseModel):
    """
    Who may use a voucher. A shopper qualifies when any one entry matches.

    Every flag defaults to off; "no restriction" is spelled `all=True`.
    """
    all: bool = False
    new: bool = False
    specific: List[str] = []
    levels: List[str] = []

    @classmethod
    def unrestricted(cls) -> "ApplicableUserGroups":
        return cls(all=True)

    @classmethod
    def from_stored(cls, raw: Optional[dict]) -> "ApplicableUserGroups":
        """Vouchers saved without a group config apply to everyone."""
        if raw is None:
            return cls.unrestricted()
        return cls.model_validate(raw)


class ShopperContext(BaseModel):
    id: Optional[str] = None
    customer_level: Optional[str] = None


class VoucherCreate(BaseModel):
    code: str  # e.g. YUMIN10, FREESHIP50K
    description: Optional[str] = None
    discount_type: str  # "percentage" or "fixed"
    discount_value: int
    max_discount_amount: Optional[int] = None
    minimum_order_value: int = 0
    start_date: datetime
    end_date: datetime
    usage_limit: int
    applicable_user_groups: Optional[ApplicableUserGroups] = None
    applicable_products: List[str] = []
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def code_trim_upper(cls, v: str) -> str:
        return v.strip().upper() if v else ""

    @field_validator("discount_type")
    @classmethod
    def discount_type_lower(cls, v: str) -> str:
        return v.strip().lower() if v else ""

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class VoucherUpdate(BaseModel):
    code: Optional[str] = None
    description: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[int] = None
    max_discount_amount: Optional[int] = None
    minimum_order_value: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = None
    applicable_user_groups: Optional[ApplicableUserGroups] = None
    applicable_products: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def code_trim_upper(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else None

    @field_validator("discount_type")
    @classmethod
    def discount_type_lower(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v is not None else None

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class VoucherResponse(BaseModel):
    id: int
    code: str
    description: Optional[str]
    discount_type: DiscountTypeEnum
    discount_value: int
    max_discount_amount: Optional[int]
    minimum_order_value: int
    start_date: datetime
    end_date: datetime
    usage_limit: int
    used_count: int
    applicable_user_groups: ApplicableUserGroups
    applicable_products: List[str]
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("applicable_user_groups", mode="before")
    @classmethod
    def resolve_groups(cls, v: Any) -> Any:
        if v is None:
            return ApplicableUserGroups.unrestricted()
        return v

    @field_validator("applicable_products", mode="before")
    @classmethod
    def products_default(cls, v: Any) -> Any:
        return v or []

    @field_validator("start_date", "end_date", "created_at", "updated_at")
    @classmethod
    def dates_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    class Config:
        from_attributes = True


class VoucherPublicResponse(BaseModel):
    """Fields safe to show to anonymous visitors."""
    code: str
    description: Optional[str]
    discount_type: DiscountTypeEnum
    discount_value: int
    max_discount_amount: Optional[int]
    minimum_order_value: int
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    class Config:
        from_attributes = True


class VoucherPartitionResponse(BaseModel):
    available: List[VoucherResponse]
    unavailable: List[VoucherResponse]


class VoucherApplyRequest(BaseModel):
    code: str
    order_value: int
    product_ids: List[str] = []

    @field_validator("code")
    @classmethod
    def code_trim_upper(cls, v: str) -> str:
        return v.strip().upper() if v else ""


class VoucherApplyResponse(BaseModel):
    voucher_id: int
    code: str
    discount_amount: int
    final_amount: int
    message: str


class PaginatedVouchersResponse(BaseModel):
    data: List[VoucherResponse]
    total: int
    page: int
    limit: int


class VoucherUsageSummary(BaseModel):
    code: str
    discount_type: DiscountTypeEnum
    discount_value: int
    used_count: int
    usage_limit: int

    class Config:
        from_attributes = True


class VoucherUsageStatistics(BaseModel):
    total_used: int
    total_limit: int
    usage_rate: float  # percent of all redemptions allowed that were used


class VoucherStatisticsResponse(BaseModel):
    total_vouchers: int
    active_vouchers: int
    expired_vouchers: int
    unused_vouchers: int
    top_used_vouchers: List[VoucherUsageSummary]
    usage_statistics: VoucherUsageStatistics
