from fastapi import APIRouter
from app.api.v1.endpoints import (
    vouchers,
    vouchers_admin,
)

api_router = APIRouter()
api_router.include_router(vouchers.router, prefix="/vouchers", tags=["vouchers"])
api_router.include_router(vouchers_admin.router, prefix="/admin/vouchers", tags=["admin-vouchers"])
