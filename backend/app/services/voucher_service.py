"""
Voucher Service for the Yumin storefront

Provides the voucher rules used at checkout:
- Eligibility classification (available / unavailable) for a shopper and order value
- Discount computation
- Applying a voucher code: server-side re-validation and an atomic usage increment
"""
from datetime import datetime, timezone
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db_transaction import db_transaction
from app.core.exceptions import (
    VoucherError,
    VoucherExhaustedError,
    VoucherIneligibleError,
    VoucherInvalidInputError,
    VoucherNotFoundError,
)
from app.core.logging_config import get_logger
from app.core.validators import ensure_utc
from app.models.voucher import DiscountTypeEnum, Voucher
from app.repositories.voucher_repository import VoucherRepository, normalize_code
from app.schemas.voucher import ApplicableUserGroups, ShopperContext, VoucherApplyResponse

logger = get_logger("voucher_service")

ALREADY_REDEEMED_MESSAGE = "You have already used this voucher."


class VoucherPartition(NamedTuple):
    available: List[Voucher]
    unavailable: List[Voucher]


def _resolve_now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else datetime.now(timezone.utc)


def is_within_validity_window(voucher: Voucher, now: datetime) -> bool:
    return ensure_utc(voucher.start_date) <= ensure_utc(now) <= ensure_utc(voucher.end_date)


def has_remaining_uses(voucher: Voucher) -> bool:
    return (voucher.used_count or 0) < voucher.usage_limit


def meets_minimum_order(voucher: Voucher, order_value: int) -> bool:
    return order_value >= (voucher.minimum_order_value or 0)


def user_matches_groups(groups: ApplicableUserGroups, shopper: ShopperContext) -> bool:
    """True when any one of the voucher's user groups covers the shopper."""
    if groups.all:
        return True
    if shopper.id and shopper.id in groups.specific:
        return True
    if shopper.customer_level:
        if shopper.customer_level in groups.levels:
            return True
        if groups.new and shopper.customer_level == settings.NEW_CUSTOMER_LEVEL:
            return True
    return False


def matches_products(voucher: Voucher, product_ids: Iterable[str]) -> bool:
    applicable = voucher.applicable_products or []
    if not applicable:
        return True
    return any(product_id in applicable for product_id in product_ids)


def is_eligible(voucher: Voucher, order_value: int, shopper: ShopperContext, now: datetime) -> bool:
    return (
        is_within_validity_window(voucher, now)
        and has_remaining_uses(voucher)
        and meets_minimum_order(voucher, order_value)
        and user_matches_groups(ApplicableUserGroups.from_stored(voucher.applicable_user_groups), shopper)
    )


def classify_vouchers(
    vouchers: Sequence[Voucher],
    order_value: int,
    shopper: ShopperContext,
    now: Optional[datetime] = None,
) -> VoucherPartition:
    """
    Split vouchers into those the shopper can use on this order and the rest.

    Input order is kept in both lists. Nothing is read from or written to
    the database, so repeated calls with the same inputs give the same split.
    """
    now = _resolve_now(now)
    available: List[Voucher] = []
    unavailable: List[Voucher] = []
    for voucher in vouchers:
        if is_eligible(voucher, order_value, shopper, now):
            available.append(voucher)
        else:
            unavailable.append(voucher)
    return VoucherPartition(available, unavailable)


def ineligibility_reason(
    voucher: Voucher,
    order_value: int,
    shopper: ShopperContext,
    now: Optional[datetime] = None,
) -> Optional[Tuple[Type[VoucherError], str]]:
    """
    Explain why a voucher can't be used, or return None if it can.

    Returns:
        (error class, shopper-facing message) for the first failed check
    """
    now = _resolve_now(now)
    if now < ensure_utc(voucher.start_date):
        return VoucherIneligibleError, "This voucher is not yet valid."
    if now > ensure_utc(voucher.end_date):
        return VoucherIneligibleError, "This voucher has expired."
    if not has_remaining_uses(voucher):
        return VoucherExhaustedError, "This voucher has reached its usage limit."
    if not meets_minimum_order(voucher, order_value):
        return (
            VoucherIneligibleError,
            f"Order value must be at least {voucher.minimum_order_value:,} VND to use this voucher.",
        )
    groups = ApplicableUserGroups.from_stored(voucher.applicable_user_groups)
    if not user_matches_groups(groups, shopper):
        if groups.levels:
            return VoucherIneligibleError, f"This voucher is only for: {', '.join(groups.levels)}."
        return VoucherIneligibleError, "This voucher is not available for your account."
    return None


def compute_discount(voucher: Voucher, order_value: int) -> Tuple[int, int]:
    """
    Returns:
        (discount_amount, final_amount), both never negative
    """
    if voucher.discount_type == DiscountTypeEnum.PERCENTAGE:
        discount = order_value * voucher.discount_value // 100
        if voucher.max_discount_amount is not None:
            discount = min(discount, voucher.max_discount_amount)
    else:
        discount = voucher.discount_value
    discount = max(0, min(discount, order_value))
    final = max(0, order_value - discount)
    return discount, final


def find_voucher_by_code(db: Session, code: str) -> Optional[Voucher]:
    return VoucherRepository(db).find_by_code(code)


def list_applicable_vouchers(
    db: Session,
    order_value: int,
    product_ids: Sequence[str],
    shopper: ShopperContext,
    now: Optional[datetime] = None,
) -> List[Voucher]:
    """
    Usable vouchers that also cover the cart's products, biggest discount value first.

    Vouchers the shopper has already redeemed are left out.
    """
    repo = VoucherRepository(db)
    partition = classify_vouchers(repo.list_vouchers(), order_value, shopper, now)
    redeemed = repo.redeemed_voucher_ids(shopper.id)
    applicable = [
        v for v in partition.available
        if v.id not in redeemed and matches_products(v, product_ids)
    ]
    return sorted(applicable, key=lambda v: v.discount_value, reverse=True)


def apply_voucher(
    db: Session,
    code: str,
    order_value: int,
    product_ids: Sequence[str],
    shopper: ShopperContext,
    now: Optional[datetime] = None,
) -> VoucherApplyResponse:
    """
    Redeem a voucher code against an order.

    Every rule is re-checked here regardless of what the client was shown.
    On success one use is taken with a conditional UPDATE and a redemption
    row is written in the same transaction.

    Raises:
        VoucherInvalidInputError: blank code or negative order value
        VoucherNotFoundError: unknown or deactivated code
        VoucherIneligibleError: outside the validity window, below the
            minimum order, wrong user group, already redeemed by this
            shopper, or no matching product
        VoucherExhaustedError: no uses left, including losing the last use
            to a concurrent request
    """
    code_str = normalize_code(code)
    if not code_str:
        raise VoucherInvalidInputError("Please enter a voucher code.")
    if order_value is None or order_value < 0:
        raise VoucherInvalidInputError("Order value must be zero or greater.")

    repo = VoucherRepository(db)
    voucher = repo.find_by_code(code_str, active_only=True)
    if voucher is None:
        logger.info(f"Voucher apply rejected, unknown code {code_str}", extra={"user_id": shopper.id})
        raise VoucherNotFoundError("Invalid or inactive voucher code.")

    reason = ineligibility_reason(voucher, order_value, shopper, now)
    if reason is not None:
        error_cls, message = reason
        logger.info(
            f"Voucher apply rejected: code={voucher.code} reason={error_cls.error}",
            extra={"voucher_id": voucher.id, "user_id": shopper.id, "order_value": order_value},
        )
        raise error_cls(message)

    if repo.has_redeemed(voucher.id, shopper.id):
        logger.info(
            f"Voucher apply rejected: code={voucher.code} already redeemed",
            extra={"voucher_id": voucher.id, "user_id": shopper.id},
        )
        raise VoucherIneligibleError(ALREADY_REDEEMED_MESSAGE)

    if not matches_products(voucher, product_ids or []):
        raise VoucherIneligibleError("This voucher does not apply to the products in your order.")

    discount, final = compute_discount(voucher, order_value)
    voucher_id = voucher.id
    voucher_code = voucher.code

    try:
        with db_transaction(db):
            if not repo.increment_used_count_if_below_limit(voucher_id, shopper.id):
                if repo.has_redeemed(voucher_id, shopper.id):
                    raise VoucherIneligibleError(ALREADY_REDEEMED_MESSAGE)
                logger.info(
                    f"Voucher {voucher_code} ran out of uses during apply",
                    extra={"voucher_id": voucher_id, "user_id": shopper.id},
                )
                raise VoucherExhaustedError("This voucher has just run out of uses.")
            repo.record_redemption(
                voucher_id=voucher_id,
                user_id=shopper.id,
                order_value=order_value,
                discount_amount=discount,
                final_amount=final,
            )
    except IntegrityError:
        # unique (voucher_id, user_id) index: the same shopper's concurrent apply committed first
        raise VoucherIneligibleError(ALREADY_REDEEMED_MESSAGE)

    logger.info(
        f"Voucher {voucher_code} applied: discount={discount} final={final}",
        extra={"voucher_id": voucher_id, "user_id": shopper.id, "order_value": order_value},
    )
    return VoucherApplyResponse(
        voucher_id=voucher_id,
        code=voucher_code,
        discount_amount=discount,
        final_amount=final,
        message="Voucher applied.",
    )
