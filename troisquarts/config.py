import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
import json
from typing import Optional

try:
    from dotenv import load_dotenv  # type: ignore
except Exception:  # pragma: no cover
    load_dotenv = None  # type: ignore


DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org/search"


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    log_level: str
    currency: str
    vat_rate: Decimal
    delivery_fee: Decimal
    free_delivery_threshold: Decimal
    delivery_radius_km: int
    restaurant_lat: float
    restaurant_lng: float
    geocoder_url: str
    geocoder_timeout: float

    def public_settings(self) -> dict:
        return {
            "currency": self.currency,
            "vat_rate": float(self.vat_rate),
            "delivery_fee": float(self.delivery_fee),
            "free_delivery_threshold": float(self.free_delivery_threshold),
            "delivery_radius_km": self.delivery_radius_km,
        }


def validate_currency(value: Optional[str]) -> str:
    v = (value or "EUR").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_vat_rate(value) -> Decimal:
    rate = _to_decimal(value if value is not None else "0.10", "VAT_RATE")
    if rate < 0 or rate >= 1:
        raise ValueError("VAT_RATE must be a fraction in [0, 1)")
    return rate


def _to_decimal(value, key: str) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{key} must be a decimal number")


def _non_negative_amount(value, key: str, default: str) -> Decimal:
    amount = _to_decimal(value if value not in (None, "") else default, key)
    if amount < 0:
        raise ValueError(f"{key} must be >= 0")
    return amount.quantize(Decimal("0.01"))


def _load_settings_file() -> dict:
    try:
        path = Path(__file__).resolve().parents[1] / "data" / "settings.json"
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        pass
    return {}


def load_env(overrides: Optional[dict] = None) -> AppConfig:
    # data/settings.json wins over the environment, .env only fills gaps
    if load_dotenv:
        load_dotenv()
    s = dict(_load_settings_file())
    s.update(overrides or {})

    def pick(key: str, default=None):
        value = s.get(key)
        if value is None or value == "":
            value = os.getenv(key, default)
        return value

    radius = int(pick("DELIVERY_RADIUS_KM", "10"))
    if radius <= 0:
        raise ValueError("DELIVERY_RADIUS_KM must be > 0")
    timeout = float(pick("GEOCODER_TIMEOUT", "5"))
    if timeout <= 0:
        raise ValueError("GEOCODER_TIMEOUT must be > 0")

    return AppConfig(
        database_url=pick("DATABASE_URL", "sqlite:///data/app.db"),
        secret_key=pick("SECRET_KEY", "dev_secret"),
        log_level=str(pick("LOG_LEVEL", "INFO")).upper(),
        currency=validate_currency(pick("CURRENCY")),
        vat_rate=validate_vat_rate(pick("VAT_RATE")),
        delivery_fee=_non_negative_amount(pick("DELIVERY_FEE"), "DELIVERY_FEE", "5.00"),
        free_delivery_threshold=_non_negative_amount(
            pick("FREE_DELIVERY_THRESHOLD"), "FREE_DELIVERY_THRESHOLD", "30.00"
        ),
        delivery_radius_km=radius,
        restaurant_lat=float(pick("RESTAURANT_LAT", "43.2965")),
        restaurant_lng=float(pick("RESTAURANT_LNG", "5.3698")),
        geocoder_url=str(pick("GEOCODER_URL", DEFAULT_GEOCODER_URL)),
        geocoder_timeout=timeout,
    )
