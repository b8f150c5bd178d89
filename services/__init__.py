"""餐廳網站專用的外部服務模組入口。"""

from .address_validator import AddressValidator

__all__ = [
    "AddressValidator",
]
