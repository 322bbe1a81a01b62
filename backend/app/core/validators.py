"""
Reusable validators for voucher administration
"""
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import HTTPException, status
from app.core.config import settings
from app.models.voucher import DiscountTypeEnum
from app.core.logging_config import get_logger

logger = get_logger("validators")


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return `value` as a timezone-aware UTC datetime.

    SQLite hands back naive datetimes even for DateTime(timezone=True)
    columns; everything we store is UTC, so naive values are read as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_voucher_values(
    discount_type: str,
    discount_value: int,
    usage_limit: int,
    start_date: datetime,
    end_date: datetime,
    minimum_order_value: int = 0,
    max_discount_amount: Optional[int] = None,
) -> DiscountTypeEnum:
    """
    Validate the numeric and date rules of a voucher.

    Used by both create and update (after merging the patch onto the stored
    voucher), so a partial update can't leave an inconsistent row behind.

    Returns:
        The parsed DiscountTypeEnum

    Raises:
        HTTPException: 400 with a message naming the offending field
    """
    try:
        parsed_type = DiscountTypeEnum(discount_type)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="discount_type must be 'percentage' or 'fixed'",
        )

    if parsed_type == DiscountTypeEnum.PERCENTAGE and not 1 <= discount_value <= 100:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="discount_value for percentage must be between 1 and 100",
        )
    if parsed_type == DiscountTypeEnum.FIXED and discount_value < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="discount_value for fixed must be >= 1",
        )
    if max_discount_amount is not None and max_discount_amount < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="max_discount_amount must be >= 1 when set",
        )
    if minimum_order_value < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="minimum_order_value must be >= 0",
        )
    if usage_limit < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="usage_limit must be >= 1",
        )
    if ensure_utc(end_date) < ensure_utc(start_date):
        logger.info(
            f"Rejected voucher window: start={start_date} end={end_date}",
            extra={"start_date": str(start_date), "end_date": str(end_date)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )
    return parsed_type


def validate_customer_levels(levels: List[str]) -> None:
    """Reject tier names the user service never issues; such a voucher could never match."""
    unknown = [level for level in levels if level not in settings.CUSTOMER_LEVELS]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown customer level(s): {', '.join(unknown)}. "
                   f"Expected any of: {', '.join(settings.CUSTOMER_LEVELS)}",
        )
