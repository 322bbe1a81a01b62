"""
Persistence for vouchers and their redemptions.

The only write that races between requests is the usage counter; it goes
through increment_used_count_if_below_limit, a single conditional UPDATE
that also refuses a second use by the same shopper.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import exists, func, select, update
from sqlalchemy.orm import Session

from app.core.logging_config import get_logger
from app.models.voucher import Voucher, VoucherRedemption

logger = get_logger("voucher_repository")

SORTABLE_COLUMNS = {
    "created_at": Voucher.created_at,
    "code": Voucher.code,
    "start_date": Voucher.start_date,
    "end_date": Voucher.end_date,
    "discount_value": Voucher.discount_value,
    "used_count": Voucher.used_count,
}


def normalize_code(code: Optional[str]) -> str:
    return code.strip().upper() if code else ""


class VoucherRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, voucher_id: int) -> Optional[Voucher]:
        return self.db.query(Voucher).filter(Voucher.id == voucher_id).first()

    def find_by_code(self, code: str, active_only: bool = False) -> Optional[Voucher]:
        code_str = normalize_code(code)
        if not code_str:
            return None
        query = self.db.query(Voucher).filter(Voucher.code == code_str)
        if active_only:
            query = query.filter(Voucher.is_active == True)
        return query.first()

    def list_vouchers(self) -> List[Voucher]:
        """Candidate vouchers for shoppers: everything an admin hasn't switched off."""
        return (
            self.db.query(Voucher)
            .filter(Voucher.is_active == True)
            .order_by(Voucher.created_at.desc(), Voucher.id.desc())
            .all()
        )

    def list_currently_valid(self, now: datetime) -> List[Voucher]:
        return (
            self.db.query(Voucher)
            .filter(
                Voucher.is_active == True,
                Voucher.start_date <= now,
                Voucher.end_date >= now,
                Voucher.used_count < Voucher.usage_limit,
            )
            .order_by(Voucher.created_at.desc(), Voucher.id.desc())
            .all()
        )

    def list_paginated(
        self,
        page: int = 1,
        limit: int = 10,
        code: Optional[str] = None,
        is_active: Optional[bool] = None,
        start_date_from: Optional[datetime] = None,
        start_date_to: Optional[datetime] = None,
        end_date_from: Optional[datetime] = None,
        end_date_to: Optional[datetime] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Voucher], int]:
        query = self.db.query(Voucher)
        if code:
            query = query.filter(Voucher.code.ilike(f"%{code.strip()}%"))
        if is_active is not None:
            query = query.filter(Voucher.is_active == is_active)
        if start_date_from:
            query = query.filter(Voucher.start_date >= start_date_from)
        if start_date_to:
            query = query.filter(Voucher.start_date <= start_date_to)
        if end_date_from:
            query = query.filter(Voucher.end_date >= end_date_from)
        if end_date_to:
            query = query.filter(Voucher.end_date <= end_date_to)

        total = query.count()

        column = SORTABLE_COLUMNS.get(sort_by, Voucher.created_at)
        ordering = column.asc() if sort_order.lower() == "asc" else column.desc()
        rows = (
            query.order_by(ordering, Voucher.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def code_taken(self, code: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(Voucher.id).filter(Voucher.code == normalize_code(code))
        if exclude_id is not None:
            query = query.filter(Voucher.id != exclude_id)
        return query.first() is not None

    def create(self, **fields: Any) -> Voucher:
        voucher = Voucher(used_count=0, **fields)
        self.db.add(voucher)
        self.db.commit()
        self.db.refresh(voucher)
        return voucher

    def update(self, voucher: Voucher, changes: Dict[str, Any]) -> Voucher:
        for key, value in changes.items():
            setattr(voucher, key, value)
        self.db.commit()
        self.db.refresh(voucher)
        return voucher

    def delete(self, voucher: Voucher) -> None:
        self.db.delete(voucher)
        self.db.commit()

    def has_redeemed(self, voucher_id: int, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        return self.db.query(
            exists().where(
                VoucherRedemption.voucher_id == voucher_id,
                VoucherRedemption.user_id == user_id,
            )
        ).scalar()

    def redeemed_voucher_ids(self, user_id: Optional[str]) -> Set[int]:
        if not user_id:
            return set()
        rows = (
            self.db.query(VoucherRedemption.voucher_id)
            .filter(VoucherRedemption.user_id == user_id)
            .distinct()
            .all()
        )
        return {voucher_id for (voucher_id,) in rows}

    def increment_used_count_if_below_limit(self, voucher_id: int, user_id: Optional[str] = None) -> bool:
        """
        Take one use of the voucher in a single statement.

        With a user_id, the row only matches while that user has no
        redemption of the voucher yet.

        Returns False when no row matched: the limit was already reached or
        the user already redeemed it, possibly by a concurrent request since
        the caller last read the voucher.
        """
        conditions = [Voucher.id == voucher_id, Voucher.used_count < Voucher.usage_limit]
        if user_id:
            already_redeemed = select(VoucherRedemption.id).where(
                VoucherRedemption.voucher_id == voucher_id,
                VoucherRedemption.user_id == user_id,
            )
            conditions.append(~already_redeemed.exists())

        result = self.db.execute(
            update(Voucher)
            .where(*conditions)
            .values(used_count=Voucher.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.debug(f"Usage increment matched no row for voucher_id={voucher_id} user_id={user_id}")
            return False
        return True

    def record_redemption(
        self,
        voucher_id: int,
        user_id: Optional[str],
        order_value: int,
        discount_amount: int,
        final_amount: int,
    ) -> VoucherRedemption:
        redemption = VoucherRedemption(
            voucher_id=voucher_id,
            user_id=user_id,
            order_value=order_value,
            discount_amount=discount_amount,
            final_amount=final_amount,
        )
        self.db.add(redemption)
        return redemption

    def statistics(self, now: datetime, top: int = 5) -> Dict[str, Any]:
        total_vouchers = self.db.query(func.count(Voucher.id)).scalar() or 0
        active_vouchers = self.db.query(func.count(Voucher.id)).filter(
            Voucher.is_active == True,
            Voucher.start_date <= now,
            Voucher.end_date >= now,
        ).scalar() or 0
        expired_vouchers = self.db.query(func.count(Voucher.id)).filter(
            Voucher.end_date < now,
        ).scalar() or 0
        unused_vouchers = self.db.query(func.count(Voucher.id)).filter(
            Voucher.used_count == 0,
            Voucher.end_date >= now,
        ).scalar() or 0
        top_used = (
            self.db.query(Voucher)
            .order_by(Voucher.used_count.desc(), Voucher.id.asc())
            .limit(top)
            .all()
        )
        total_used, total_limit = self.db.query(
            func.coalesce(func.sum(Voucher.used_count), 0),
            func.coalesce(func.sum(Voucher.usage_limit), 0),
        ).one()

        usage_rate = (total_used / total_limit * 100) if total_limit else 0.0
        return {
            "total_vouchers": total_vouchers,
            "active_vouchers": active_vouchers,
            "expired_vouchers": expired_vouchers,
            "unused_vouchers": unused_vouchers,
            "top_used_vouchers": top_used,
            "usage_statistics": {
                "total_used": int(total_used),
                "total_limit": int(total_limit),
                "usage_rate": round(usage_rate, 2),
            },
        }
