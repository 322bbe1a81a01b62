"""Tests for applying a voucher: re-validation, discount result, usage counting."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.core.database import SessionLocal
from app.core.exceptions import (
    VoucherExhaustedError,
    VoucherIneligibleError,
    VoucherInvalidInputError,
    VoucherNotFoundError,
)
from app.models.voucher import DiscountTypeEnum, Voucher, VoucherRedemption
from app.repositories.voucher_repository import VoucherRepository
from app.schemas.voucher import ShopperContext
from app.services.voucher_service import apply_voucher

SHOPPER = ShopperContext(id="user-1", customer_level="regular")


def reload(db_session, voucher):
    db_session.expire_all()
    return db_session.get(Voucher, voucher.id)


def test_percentage_voucher(db_session, make_voucher):
    voucher = make_voucher()

    result = apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)

    assert result.voucher_id == voucher.id
    assert result.code == "YUMIN10"
    assert result.discount_amount == 50000
    assert result.final_amount == 450000
    assert result.message
    assert reload(db_session, voucher).used_count == 1


def test_percentage_voucher_with_cap(db_session, make_voucher):
    make_voucher(max_discount_amount=30000)

    result = apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)

    assert result.discount_amount == 30000
    assert result.final_amount == 470000


def test_fixed_voucher_larger_than_order(db_session, make_voucher):
    make_voucher(code="FLAT200K", discount_type=DiscountTypeEnum.FIXED, discount_value=200000)

    result = apply_voucher(db_session, "FLAT200K", 150000, [], SHOPPER)

    assert result.discount_amount == 150000
    assert result.final_amount == 0


def test_code_lookup_is_case_insensitive(db_session, make_voucher):
    make_voucher()
    result = apply_voucher(db_session, "  yumin10 ", 100000, [], SHOPPER)
    assert result.code == "YUMIN10"


def test_success_records_redemption(db_session, make_voucher):
    voucher = make_voucher()

    apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)

    redemptions = db_session.query(VoucherRedemption).filter_by(voucher_id=voucher.id).all()
    assert len(redemptions) == 1
    assert redemptions[0].user_id == "user-1"
    assert redemptions[0].order_value == 500000
    assert redemptions[0].discount_amount == 50000
    assert redemptions[0].final_amount == 450000


def test_expired_voucher_is_ineligible(db_session, make_voucher):
    now = datetime.now(timezone.utc)
    voucher = make_voucher(start_date=now - timedelta(days=30), end_date=now - timedelta(days=1))

    with pytest.raises(VoucherIneligibleError, match="expired"):
        apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)

    assert reload(db_session, voucher).used_count == 0


def test_below_minimum_order_is_ineligible(db_session, make_voucher):
    voucher = make_voucher(minimum_order_value=500000)

    with pytest.raises(VoucherIneligibleError):
        apply_voucher(db_session, "YUMIN10", 400000, [], SHOPPER)

    assert reload(db_session, voucher).used_count == 0


def test_wrong_user_group_is_ineligible(db_session, make_voucher):
    make_voucher(applicable_user_groups={"levels": ["vip"]})

    with pytest.raises(VoucherIneligibleError):
        apply_voucher(db_session, "YUMIN10", 400000, [], SHOPPER)


def test_used_up_voucher_is_exhausted(db_session, make_voucher):
    make_voucher(usage_limit=10, used_count=10)

    with pytest.raises(VoucherExhaustedError):
        apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)


def test_unknown_code_is_not_found(db_session, make_voucher):
    make_voucher()

    with pytest.raises(VoucherNotFoundError):
        apply_voucher(db_session, "NOPE", 500000, [], SHOPPER)


def test_deactivated_voucher_is_not_found(db_session, make_voucher):
    make_voucher(is_active=False)

    with pytest.raises(VoucherNotFoundError):
        apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)


@pytest.mark.parametrize("code", ["", "   "])
def test_blank_code_is_invalid_input(db_session, code):
    with pytest.raises(VoucherInvalidInputError):
        apply_voucher(db_session, code, 500000, [], SHOPPER)


def test_negative_order_value_is_invalid_input(db_session, make_voucher):
    make_voucher()
    with pytest.raises(VoucherInvalidInputError):
        apply_voucher(db_session, "YUMIN10", -1, [], SHOPPER)


def test_product_restricted_voucher_needs_a_matching_product(db_session, make_voucher):
    make_voucher(applicable_products=["lipstick-01", "serum-02"])

    with pytest.raises(VoucherIneligibleError, match="products"):
        apply_voucher(db_session, "YUMIN10", 500000, ["toner-07"], SHOPPER)

    result = apply_voucher(db_session, "YUMIN10", 500000, ["toner-07", "serum-02"], SHOPPER)
    assert result.discount_amount == 50000


def test_last_use_goes_to_exactly_one_caller(db_session, make_voucher):
    voucher = make_voucher(usage_limit=1)

    apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)
    with pytest.raises(VoucherExhaustedError):
        apply_voucher(db_session, "YUMIN10", 500000, [], ShopperContext(id="user-2"))

    assert reload(db_session, voucher).used_count == 1


def test_losing_the_race_for_the_last_use_is_exhausted(db_session, make_voucher, monkeypatch):
    """Another checkout takes the last use after we read the voucher but before we increment."""
    voucher = make_voucher(usage_limit=1)
    real_find_by_code = VoucherRepository.find_by_code
    state = {"raced": False, "competitor": None}

    def find_then_lose_race(self, code, active_only=False):
        found = real_find_by_code(self, code, active_only=active_only)
        if not state["raced"]:
            state["raced"] = True
            competitor_db = SessionLocal()
            try:
                state["competitor"] = apply_voucher(
                    competitor_db, code, 500000, [], ShopperContext(id="user-2")
                )
            finally:
                competitor_db.close()
        return found

    monkeypatch.setattr(VoucherRepository, "find_by_code", find_then_lose_race)

    with pytest.raises(VoucherExhaustedError):
        apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)

    assert state["competitor"].discount_amount == 50000
    assert reload(db_session, voucher).used_count == 1
    redemptions = db_session.query(VoucherRedemption).filter_by(voucher_id=voucher.id).all()
    assert [r.user_id for r in redemptions] == ["user-2"]


def test_same_shopper_cannot_redeem_twice(db_session, make_voucher):
    voucher = make_voucher(usage_limit=10)

    apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)
    with pytest.raises(VoucherIneligibleError, match="already used"):
        apply_voucher(db_session, "YUMIN10", 500000, [], SHOPPER)

    assert reload(db_session, voucher).used_count == 1
    second_shopper = apply_voucher(db_session, "YUMIN10", 500000, [], ShopperContext(id="user-2"))
    assert second_shopper.discount_amount == 50000
    assert reload(db_session, voucher).used_count == 2


def test_increment_refuses_a_shopper_who_already_redeemed(db_session, make_voucher):
    voucher = make_voucher(usage_limit=10)
    repo = VoucherRepository(db_session)
    repo.record_redemption(voucher.id, "user-1", 500000, 50000, 450000)
    db_session.commit()

    assert repo.increment_used_count_if_below_limit(voucher.id, "user-1") is False
    assert repo.increment_used_count_if_below_limit(voucher.id, "user-2") is True
    db_session.commit()
    assert reload(db_session, voucher).used_count == 1


def _apply_concurrently(shopper_ids, code="YUMIN10"):
    """Run one apply per shopper id, all released together; returns the outcome kinds."""
    barrier = threading.Barrier(len(shopper_ids))
    outcomes = []
    lock = threading.Lock()

    def worker(shopper_id):
        db = SessionLocal()
        try:
            barrier.wait()
            try:
                apply_voucher(db, code, 500000, [], ShopperContext(id=shopper_id))
                outcome = "ok"
            except (VoucherExhaustedError, VoucherIneligibleError) as e:
                outcome = e.error
        finally:
            db.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(shopper_id,)) for shopper_id in shopper_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return sorted(outcomes)


def test_concurrent_applies_for_the_last_use(db_session, make_voucher):
    voucher = make_voucher(usage_limit=1)

    outcomes = _apply_concurrently([f"user-{i}" for i in range(8)])

    assert outcomes == ["exhausted"] * 7 + ["ok"]
    assert reload(db_session, voucher).used_count == 1
    assert db_session.query(VoucherRedemption).filter_by(voucher_id=voucher.id).count() == 1


def test_concurrent_applies_by_one_shopper(db_session, make_voucher):
    voucher = make_voucher(usage_limit=10)

    outcomes = _apply_concurrently(["user-1"] * 6)

    assert outcomes == ["ineligible"] * 5 + ["ok"]
    assert reload(db_session, voucher).used_count == 1
