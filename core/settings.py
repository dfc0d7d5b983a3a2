"""
Configuration loaded from the environment (.env supported)
"""
import os
from dataclasses import dataclass
from decimal import Decimal

from dotenv import load_dotenv

from models.money import money


@dataclass(frozen=True)
class Settings:
    api_base_url: str = "http://localhost:5000/api"
    api_timeout: float = 10.0
    free_shipping_threshold: Decimal = Decimal("300.00")
    locker_pickup_hours: int = 48
    db_path: str = "checkout.db"
    secret_key: str = "dev-secret-key"
    log_level: str = "INFO"
    port: int = 5000
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            api_base_url=os.getenv("API_BASE_URL", cls.api_base_url).rstrip("/"),
            api_timeout=float(os.getenv("API_TIMEOUT", cls.api_timeout)),
            free_shipping_threshold=money(os.getenv("FREE_SHIPPING_THRESHOLD", cls.free_shipping_threshold)),
            locker_pickup_hours=int(os.getenv("LOCKER_PICKUP_HOURS", cls.locker_pickup_hours)),
            db_path=os.getenv("CHECKOUT_DB_PATH", cls.db_path),
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            port=int(os.getenv("PORT", cls.port)),
            debug=os.getenv("DEBUG", "False").lower() == "true"
        )
