from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os


class Settings(BaseSettings):
    APP_NAME: str = "Yumin Vouchers"
    DEBUG: bool = True

    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/yumin.db")

    @property
    def DATABASE_URL(self) -> str:
        # Always resolve path relative to backend directory, not current working directory
        db_path = self.DATABASE_PATH
        if not os.path.isabs(db_path):
            backend_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
            db_path = os.path.join(backend_dir, db_path)
        return f"sqlite:///{os.path.abspath(db_path)}"

    SECRET_KEY: str = os.getenv("SECRET_KEY", "yumin-dev-secret-change-me")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    HOST: str = "127.0.0.1"
    PORT: int = 8765

    # Required in X-Admin-API-Key header for the admin voucher endpoints
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

    # Customer tiers as issued by the user service
    NEW_CUSTOMER_LEVEL: str = "new"
    CUSTOMER_LEVELS: List[str] = ["new", "regular", "silver", "gold", "vip"]

    ADMIN_PAGE_SIZE_MAX: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"  # Ignore extra environment variables
    )


settings = Settings()
