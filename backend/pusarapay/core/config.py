# core/config.py
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


TOYYIBPAY_PRODUCTION_URL = "https://toyyibpay.com"
TOYYIBPAY_SANDBOX_URL = "https://dev.toyyibpay.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ────────────────────────────────
    # 1. APP & ENVIRONMENT
    # ────────────────────────────────
    PROJECT_NAME: str = "PusaraPay"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    BACKEND_URL: str = Field(
        default="http://127.0.0.1:5000",
        description="Public base URL ToyyibPay uses for return/callback URLs",
    )
    CORS_ORIGINS: List[str] = ["*"]

    # ────────────────────────────────
    # 2. TOYYIBPAY
    # ────────────────────────────────
    TOYYIBPAY_API_KEY: str = ""
    TOYYIBPAY_CATEGORY_CODE: str = ""
    TOYYIBPAY_BASE_URL: Optional[str] = Field(
        default=None,
        description="Defaults to the production or sandbox host based on ENVIRONMENT",
    )
    BILL_NAME_MAX_LENGTH: int = 30
    PROVIDER_TIMEOUT_SECONDS: float = 30.0

    # ────────────────────────────────
    # 3. FIREBASE / FIRESTORE
    # ────────────────────────────────
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = Field(
        default=None,
        description="Path to Firebase service account JSON",
    )
    # Base64-encoded Firebase service account JSON
    PUSARA_FIREBASE_KEY: Optional[str] = None
    PAYMENTS_COLLECTION: str = "payments"

    # ────────────────────────────────
    # 4. LEGACY RESERVATION BACKEND (mirror)
    # ────────────────────────────────
    LEGACY_UPDATE_URL: str = Field(
        default="",
        description="e.g. http://host:5000/api/reservations/{reservation_id}/payment; empty disables mirroring",
    )
    LEGACY_INTERNAL_KEY: str = ""
    LEGACY_PAID_STATUS: str = "Paid"
    LEGACY_TIMEOUT_SECONDS: float = 10.0

    # Reservation lookup before a bill is created; empty base URL skips it
    RESERVATION_BASE_URL: str = Field(
        default="",
        description="e.g. http://host:5000; GET {base}/api/reservations/{reservation_id}",
    )
    RESERVATION_INTERNAL_KEY: str = ""
    RESERVATION_TIMEOUT_SECONDS: float = 10.0

    # ────────────────────────────────
    # 5. TASK QUEUE (Celery)
    # ────────────────────────────────
    MIRROR_BACKEND: str = Field(default="inline", description="inline | celery")
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    @model_validator(mode="after")
    def _default_toyyibpay_url(self):
        if not self.TOYYIBPAY_BASE_URL:
            self.TOYYIBPAY_BASE_URL = (
                TOYYIBPAY_PRODUCTION_URL
                if self.ENVIRONMENT == "production"
                else TOYYIBPAY_SANDBOX_URL
            )
        self.TOYYIBPAY_BASE_URL = self.TOYYIBPAY_BASE_URL.strip().rstrip("/")
        self.BACKEND_URL = self.BACKEND_URL.strip().rstrip("/")
        self.RESERVATION_BASE_URL = self.RESERVATION_BASE_URL.strip().rstrip("/")
        return self

    @property
    def toyyibpay_configured(self) -> bool:
        return bool(self.TOYYIBPAY_API_KEY.strip() and self.TOYYIBPAY_CATEGORY_CODE.strip())


# Create singleton
settings = Settings()
