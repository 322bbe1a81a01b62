"""
Request identity for the voucher API.

Shoppers log in through the user service; we only read the bearer token it
issued. Admin endpoints use a shared API key.
"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.config import settings
from app.core.logging_config import get_logger
from app.core.security import decode_access_token
from app.schemas.voucher import ShopperContext

logger = get_logger("auth")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def get_current_shopper(token: Optional[str] = Depends(oauth2_scheme)) -> ShopperContext:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        logger.warning("get_current_shopper: no token")
        raise credentials_exception

    payload = decode_access_token(token)
    if payload is None:
        logger.warning("get_current_shopper: token decode failed")
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("get_current_shopper: no sub in payload")
        raise credentials_exception

    return ShopperContext(id=str(user_id), customer_level=payload.get("customer_level"))


def require_admin_api_key(x_admin_api_key: Optional[str] = Header(None, alias="X-Admin-API-Key")) -> None:
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key is not configured. Set ADMIN_API_KEY in environment.",
        )
    if x_admin_api_key != settings.ADMIN_API_KEY:
        logger.warning("require_admin_api_key: invalid or missing key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-Admin-API-Key header.",
        )
