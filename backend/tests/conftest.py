"""Shared fixtures: throwaway SQLite database, API client, voucher factory, auth headers."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

# Must be set before the app (and its settings/engine) is imported
_tmp_dir = tempfile.mkdtemp(prefix="yumin-vouchers-tests-")
os.environ["DATABASE_PATH"] = os.path.join(_tmp_dir, "test.db")
os.environ["YUMIN_LOG_DIR"] = os.path.join(_tmp_dir, "logs")
os.environ["DEBUG"] = "false"
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine
from app.core.security import create_access_token
from app.main import app
from app.models.voucher import DiscountTypeEnum, Voucher

ADMIN_API_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def reset_database():
    """Start every test from empty tables."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def db_session():
    """A database session for direct service and repository testing."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_voucher(db_session):
    """Insert a voucher that is valid now, overriding any field."""

    def _make(**overrides):
        now = datetime.now(timezone.utc)
        fields = dict(
            code="YUMIN10",
            description="10% off everything",
            discount_type=DiscountTypeEnum.PERCENTAGE,
            discount_value=10,
            max_discount_amount=None,
            minimum_order_value=0,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
            usage_limit=100,
            used_count=0,
            applicable_user_groups={"all": True},
            applicable_products=[],
            is_active=True,
        )
        fields.update(overrides)
        voucher = Voucher(**fields)
        db_session.add(voucher)
        db_session.commit()
        db_session.refresh(voucher)
        return voucher

    return _make


@pytest.fixture
def shopper_headers():
    """Bearer headers for a shopper, as the user service would issue them."""

    def _headers(user_id="user-1", customer_level="regular"):
        claims = {"sub": user_id}
        if customer_level is not None:
            claims["customer_level"] = customer_level
        return {"Authorization": f"Bearer {create_access_token(claims)}"}

    return _headers


@pytest.fixture
def admin_headers():
    return {"X-Admin-API-Key": ADMIN_API_KEY}
