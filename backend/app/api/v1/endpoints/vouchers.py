"""
Shopper-facing vouchers: list for the checkout picker, look up, apply.
"""
from datetime import datetime, timezone
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.api.v1.endpoints.auth import get_current_shopper
from app.repositories.voucher_repository import VoucherRepository
from app.schemas.voucher import (
    ShopperContext,
    VoucherApplyRequest,
    VoucherApplyResponse,
    VoucherPartitionResponse,
    VoucherPublicResponse,
    VoucherResponse,
)
from app.services import voucher_service

router = APIRouter()


@router.get("/", response_model=VoucherPartitionResponse)
def list_vouchers_for_order(
    order_value: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    shopper: ShopperContext = Depends(get_current_shopper),
):
    """Every offered voucher, split into usable and not usable for this order."""
    vouchers = VoucherRepository(db).list_vouchers()
    partition = voucher_service.classify_vouchers(vouchers, order_value, shopper)
    return VoucherPartitionResponse(
        available=[VoucherResponse.model_validate(v) for v in partition.available],
        unavailable=[VoucherResponse.model_validate(v) for v in partition.unavailable],
    )


@router.get("/applicable", response_model=List[VoucherResponse])
def list_applicable_vouchers(
    order_value: int = Query(0, ge=0),
    product_ids: List[str] = Query([]),
    db: Session = Depends(get_db),
    shopper: ShopperContext = Depends(get_current_shopper),
):
    return voucher_service.list_applicable_vouchers(db, order_value, product_ids, shopper)


@router.get("/public-active", response_model=List[VoucherPublicResponse])
def list_public_active_vouchers(db: Session = Depends(get_db)):
    """Currently valid vouchers with uses left. No login needed; public fields only."""
    return VoucherRepository(db).list_currently_valid(datetime.now(timezone.utc))


@router.get("/code/{code}", response_model=VoucherResponse)
def get_voucher_by_code(
    code: str,
    db: Session = Depends(get_db),
    _: ShopperContext = Depends(get_current_shopper),
):
    voucher = voucher_service.find_voucher_by_code(db, code)
    now = datetime.now(timezone.utc)
    if (
        voucher is None
        or not voucher.is_active
        or not voucher_service.is_within_validity_window(voucher, now)
        or not voucher_service.has_remaining_uses(voucher)
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'Voucher with code "{code}" not found or is not currently valid.',
        )
    return voucher


@router.post("/apply", response_model=VoucherApplyResponse)
def apply_voucher(
    body: VoucherApplyRequest,
    db: Session = Depends(get_db),
    shopper: ShopperContext = Depends(get_current_shopper),
):
    """
    Apply a voucher code at checkout.

    Rejections come back as {"detail": <message>, "error": <kind>} with
    400 (invalid_input / ineligible), 404 (not_found) or 409 (exhausted).
    """
    return voucher_service.apply_voucher(db, body.code, body.order_value, body.product_ids, shopper)
