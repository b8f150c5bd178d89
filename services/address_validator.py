"""配送地址驗證：以郵遞區號或完整地址判斷是否在外送範圍內。"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional

import requests  # type: ignore

from troisquarts.services.errors import ExternalDependencyError
from troisquarts.services.logging import log_event
from troisquarts.utils.validators import clean_zip, is_valid_french_zip


EARTH_RADIUS_KM = 6371.0
USER_AGENT = "LeTroisQuarts/1.0"

# Marseille arrondissements, used when the geocoder cannot be reached
FALLBACK_ZIP_COORDINATES = {
    f"130{n:02d}": {"lat": 43.2965, "lng": 5.3698, "display_name": f"Marseille {n}"}
    for n in range(1, 17)
}


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def extract_zip(address: str) -> Optional[str]:
    match = re.search(r"\b(\d{5})\b", address or "")
    return match.group(1) if match else None


class AddressValidator:
    """判斷地址是否位於餐廳外送半徑內。

    永遠回傳 ``{"valid", "error", "distance"}``，不會拋出例外；
    地理編碼服務失敗時改用備援座標或回報無法驗證。
    """

    def __init__(
        self,
        *,
        restaurant_lat: float,
        restaurant_lng: float,
        radius_km: int,
        geocoder_url: str,
        timeout: float = 5.0,
        http=None,
    ) -> None:
        self._origin = (restaurant_lat, restaurant_lng)
        self._radius_km = radius_km
        self._geocoder_url = geocoder_url
        self._timeout = timeout
        self._http = http or requests

    @classmethod
    def from_config(cls, config) -> "AddressValidator":
        return cls(
            restaurant_lat=config.restaurant_lat,
            restaurant_lng=config.restaurant_lng,
            radius_km=config.delivery_radius_km,
            geocoder_url=config.geocoder_url,
            timeout=config.geocoder_timeout,
        )

    def validate_address_for_delivery(self, address: str, zip_code: Optional[str] = None) -> Dict[str, Any]:
        try:
            if zip_code:
                return self.validate_zip_for_delivery(zip_code)
            extracted = extract_zip(address)
            if extracted:
                return self.validate_zip_for_delivery(extracted)
            coordinates = self._coordinates_for_address(address)
            if not coordinates:
                return self._refused("Adresse introuvable")
            return self._within_radius(coordinates)
        except Exception as exc:
            # 驗證流程不可讓例外往上拋，統一降級為無法驗證
            log_event("error", "address.validation_failed", error=type(exc).__name__)
            return self._refused("L'adresse n'a pas pu être vérifiée")

    def validate_zip_for_delivery(self, zip_code: str) -> Dict[str, Any]:
        cleaned = clean_zip(zip_code)
        if not is_valid_french_zip(cleaned):
            return self._refused("Format de code postal invalide")
        try:
            coordinates = self._geocode({"postalcode": cleaned, "country": "France"})
        except ExternalDependencyError:
            coordinates = FALLBACK_ZIP_COORDINATES.get(cleaned)
        if not coordinates:
            return self._refused("Code postal introuvable")
        return self._within_radius(coordinates)

    def _coordinates_for_address(self, address: str) -> Optional[Dict[str, Any]]:
        cleaned = (address or "").strip()
        if not cleaned:
            return None
        try:
            return self._geocode({"q": f"{cleaned}, France", "addressdetails": 1})
        except ExternalDependencyError:
            return None

    def _geocode(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        params = dict(query)
        params.update({"format": "json", "limit": 1})
        try:
            response = self._http.get(
                self._geocoder_url,
                params=params,
                headers={"User-Agent": USER_AGENT},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            log_event("warning", "address.geocode_failed", error=type(exc).__name__)
            raise ExternalDependencyError("geocoder unavailable") from exc
        if not data:
            return None
        first = data[0]
        return {
            "lat": float(first["lat"]),
            "lng": float(first["lon"]),
            "display_name": first.get("display_name"),
        }

    def _within_radius(self, coordinates: Dict[str, Any]) -> Dict[str, Any]:
        distance = haversine_km(self._origin[0], self._origin[1], coordinates["lat"], coordinates["lng"])
        inside = distance <= self._radius_km
        return {
            "valid": inside,
            "error": None if inside else f"Livraison non disponible au-delà de {self._radius_km}km",
            "distance": round(distance, 1),
        }

    @staticmethod
    def _refused(message: str) -> Dict[str, Any]:
        return {"valid": False, "error": message, "distance": None}
