import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # loads .env for local dev


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    env: str = os.getenv("ENV", "local")
    service_name: str = os.getenv("SERVICE_NAME", "partnerships-api")
    database_url: str = os.getenv("DATABASE_URL", "")
    db_pool_max_size: int = int(os.getenv("DB_POOL_MAX_SIZE", "5"))

    # Webhook delivery. PUBLIC_WEBHOOK_URL is visible to callers,
    # WEBHOOK_URL never leaves the server.
    public_webhook_url: Optional[str] = _optional("PUBLIC_WEBHOOK_URL")
    webhook_url: Optional[str] = _optional("WEBHOOK_URL")
    big_purchase_status_webhook_url: Optional[str] = _optional("BIG_PURCHASE_STATUS_WEBHOOK_URL")
    big_purchase_confirm_webhook_url: Optional[str] = _optional("BIG_PURCHASE_CONFIRM_WEBHOOK_URL")
    brevo_webhook_url: Optional[str] = _optional("BREVO_WEBHOOK_URL")
    relay_base_url: str = os.getenv("RELAY_BASE_URL", "http://127.0.0.1:8000")
    webhook_timeout_seconds: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "15"))

settings = Settings()


@dataclass(frozen=True)
class WebhookConfig:
    """Delivery targets handed to the webhook client and the relay at construction."""

    delivery_target_public: Optional[str] = None
    delivery_target_server: Optional[str] = None
    big_purchase_status_target: Optional[str] = None
    big_purchase_confirm_target: Optional[str] = None
    brevo_target: Optional[str] = None
    relay_base_url: str = "http://127.0.0.1:8000"
    timeout_seconds: float = 15.0

    @classmethod
    def from_settings(cls, s: Settings) -> "WebhookConfig":
        return cls(
            delivery_target_public=s.public_webhook_url,
            delivery_target_server=s.webhook_url,
            big_purchase_status_target=s.big_purchase_status_webhook_url,
            big_purchase_confirm_target=s.big_purchase_confirm_webhook_url,
            brevo_target=s.brevo_webhook_url,
            relay_base_url=s.relay_base_url.rstrip("/"),
            timeout_seconds=s.webhook_timeout_seconds,
        )
