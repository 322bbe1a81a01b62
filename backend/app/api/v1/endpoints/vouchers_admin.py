"""
Voucher back-office: create, browse, edit, delete and usage statistics.
All routes need the X-Admin-API-Key header.
"""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.logging_config import get_logger
from app.core.validators import ensure_utc, validate_customer_levels, validate_voucher_values
from app.api.v1.endpoints.auth import require_admin_api_key
from app.repositories.voucher_repository import VoucherRepository
from app.schemas.voucher import (
    PaginatedVouchersResponse,
    VoucherCreate,
    VoucherResponse,
    VoucherStatisticsResponse,
    VoucherUpdate,
)

logger = get_logger("vouchers_admin")

router = APIRouter(dependencies=[Depends(require_admin_api_key)])

NOT_NULL_FIELDS = (
    "code", "discount_type", "discount_value", "minimum_order_value",
    "start_date", "end_date", "usage_limit", "is_active",
)


def _get_voucher_or_404(repo: VoucherRepository, voucher_id: int):
    voucher = repo.get(voucher_id)
    if not voucher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Voucher with ID {voucher_id} not found")
    return voucher


@router.post("/", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
def create_voucher(body: VoucherCreate, db: Session = Depends(get_db)):
    """
    Create a voucher.

    Example body (percentage, capped):
      { "code": "YUMIN10", "discount_type": "percentage", "discount_value": 10,
        "max_discount_amount": 30000, "start_date": "2026-01-01T00:00:00Z",
        "end_date": "2026-12-31T23:59:59Z", "usage_limit": 100 }
    """
    if not body.code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="code is required")

    repo = VoucherRepository(db)
    if repo.code_taken(body.code):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Voucher code '{body.code}' already exists.",
        )

    discount_type = validate_voucher_values(
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        usage_limit=body.usage_limit,
        start_date=body.start_date,
        end_date=body.end_date,
        minimum_order_value=body.minimum_order_value,
        max_discount_amount=body.max_discount_amount,
    )
    if body.applicable_user_groups:
        validate_customer_levels(body.applicable_user_groups.levels)

    voucher = repo.create(
        code=body.code,
        description=body.description,
        discount_type=discount_type,
        discount_value=body.discount_value,
        max_discount_amount=body.max_discount_amount,
        minimum_order_value=body.minimum_order_value,
        start_date=body.start_date,
        end_date=body.end_date,
        usage_limit=body.usage_limit,
        applicable_user_groups=body.applicable_user_groups.model_dump() if body.applicable_user_groups else None,
        applicable_products=list(body.applicable_products),
        is_active=body.is_active,
    )
    logger.info(f"Voucher {voucher.code} created", extra={"voucher_id": voucher.id})
    return voucher


@router.get("/", response_model=PaginatedVouchersResponse)
def list_vouchers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=settings.ADMIN_PAGE_SIZE_MAX),
    code: Optional[str] = None,
    is_active: Optional[bool] = None,
    start_date_from: Optional[datetime] = None,
    start_date_to: Optional[datetime] = None,
    end_date_from: Optional[datetime] = None,
    end_date_to: Optional[datetime] = None,
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    db: Session = Depends(get_db),
):
    """Paginated list; `code` matches any part of the code, case-insensitively."""
    rows, total = VoucherRepository(db).list_paginated(
        page=page,
        limit=limit,
        code=code,
        is_active=is_active,
        start_date_from=ensure_utc(start_date_from),
        start_date_to=ensure_utc(start_date_to),
        end_date_from=ensure_utc(end_date_from),
        end_date_to=ensure_utc(end_date_to),
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return PaginatedVouchersResponse(
        data=[VoucherResponse.model_validate(v) for v in rows],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/statistics", response_model=VoucherStatisticsResponse)
def get_voucher_statistics(db: Session = Depends(get_db)):
    return VoucherRepository(db).statistics(datetime.now(timezone.utc))


@router.get("/{voucher_id}", response_model=VoucherResponse)
def get_voucher(voucher_id: int, db: Session = Depends(get_db)):
    return _get_voucher_or_404(VoucherRepository(db), voucher_id)


@router.patch("/{voucher_id}", response_model=VoucherResponse)
def update_voucher(voucher_id: int, body: VoucherUpdate, db: Session = Depends(get_db)):
    repo = VoucherRepository(db)
    voucher = _get_voucher_or_404(repo, voucher_id)
    changes = body.model_dump(exclude_unset=True)

    if "code" in changes:
        if not changes["code"]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="code must not be empty")
        if repo.code_taken(changes["code"], exclude_id=voucher.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Voucher code '{changes['code']}' is already used by another voucher.",
            )

    for key in NOT_NULL_FIELDS:
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key} must not be null")

    # Validate the voucher as it will look after the patch
    merged = {
        "discount_type": changes.get("discount_type", voucher.discount_type.value),
        "discount_value": changes.get("discount_value", voucher.discount_value),
        "usage_limit": changes.get("usage_limit", voucher.usage_limit),
        "start_date": changes.get("start_date", voucher.start_date),
        "end_date": changes.get("end_date", voucher.end_date),
        "minimum_order_value": changes.get("minimum_order_value", voucher.minimum_order_value),
        "max_discount_amount": changes.get("max_discount_amount", voucher.max_discount_amount),
    }
    changes["discount_type"] = validate_voucher_values(**merged)
    if merged["usage_limit"] < voucher.used_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"usage_limit cannot be lower than the {voucher.used_count} uses already taken",
        )

    if "applicable_user_groups" in changes:
        groups = body.applicable_user_groups
        if groups:
            validate_customer_levels(groups.levels)
        changes["applicable_user_groups"] = groups.model_dump() if groups else None
    if "applicable_products" in changes and changes["applicable_products"] is None:
        changes["applicable_products"] = []

    voucher = repo.update(voucher, changes)
    logger.info(f"Voucher {voucher.code} updated", extra={"voucher_id": voucher.id, "fields": sorted(changes)})
    return voucher


@router.delete("/{voucher_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_voucher(voucher_id: int, db: Session = Depends(get_db)):
    repo = VoucherRepository(db)
    voucher = _get_voucher_or_404(repo, voucher_id)
    code = voucher.code
    repo.delete(voucher)
    logger.info(f"Voucher {code} deleted", extra={"voucher_id": voucher_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
