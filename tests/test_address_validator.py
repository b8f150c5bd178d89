import pytest
import requests

from services.address_validator import AddressValidator, extract_zip, haversine_km


MARSEILLE = (43.2965, 5.3698)


class FakeResponse:
    def __init__(self, data, status=200):
        self._data = data
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._data


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _validator(http, radius=10):
    return AddressValidator(
        restaurant_lat=MARSEILLE[0],
        restaurant_lng=MARSEILLE[1],
        radius_km=radius,
        geocoder_url="https://geocoder.test/search",
        timeout=3,
        http=http,
    )


def test_zip_within_radius():
    http = FakeHttp(FakeResponse([{"lat": "43.30", "lon": "5.38", "display_name": "Marseille"}]))
    result = _validator(http).validate_address_for_delivery("12 rue de la République", "13002")
    assert result["valid"] is True
    assert result["error"] is None
    assert result["distance"] < 2
    call = http.calls[0]
    assert call["params"]["postalcode"] == "13002"
    assert call["params"]["format"] == "json"
    assert call["timeout"] == 3
    assert call["headers"]["User-Agent"]


def test_zip_outside_radius():
    http = FakeHttp(FakeResponse([{"lat": "45.764", "lon": "4.8357", "display_name": "Lyon"}]))
    result = _validator(http).validate_address_for_delivery("1 place Bellecour", "69002")
    assert result["valid"] is False
    assert result["error"] == "Livraison non disponible au-delà de 10km"
    assert result["distance"] > 200


def test_bad_zip_format_does_not_call_geocoder():
    http = FakeHttp()
    result = _validator(http).validate_zip_for_delivery("1300")
    assert result == {"valid": False, "error": "Format de code postal invalide", "distance": None}
    assert http.calls == []


def test_unknown_zip():
    result = _validator(FakeHttp(FakeResponse([]))).validate_zip_for_delivery("99999")
    assert result["valid"] is False
    assert result["error"] == "Code postal introuvable"


def test_timeout_falls_back_to_known_marseille_zip():
    http = FakeHttp(error=requests.exceptions.Timeout("slow"))
    result = _validator(http).validate_address_for_delivery("3 quai du Port", "13002")
    assert result["valid"] is True
    assert result["distance"] == 0.0


def test_timeout_for_unknown_zip_degrades_to_invalid():
    http = FakeHttp(error=requests.exceptions.ConnectionError("down"))
    result = _validator(http).validate_address_for_delivery("somewhere", "75001")
    assert result["valid"] is False
    assert result["error"]


def test_server_error_is_treated_as_unreachable():
    http = FakeHttp(FakeResponse({}, status=503))
    result = _validator(http).validate_zip_for_delivery("75001")
    assert result["valid"] is False


def test_zip_is_extracted_from_free_text():
    http = FakeHttp(FakeResponse([{"lat": "43.2965", "lon": "5.3698"}]))
    result = _validator(http).validate_address_for_delivery("3 quai du Port, 13002 Marseille")
    assert result["valid"] is True
    assert http.calls[0]["params"]["postalcode"] == "13002"


def test_full_address_lookup_without_zip():
    http = FakeHttp(FakeResponse([{"lat": "43.2965", "lon": "5.3698"}]))
    result = _validator(http).validate_address_for_delivery("Vieux-Port")
    assert result["valid"] is True
    assert http.calls[0]["params"]["q"] == "Vieux-Port, France"


def test_full_address_unreachable_geocoder():
    http = FakeHttp(error=requests.exceptions.Timeout("slow"))
    result = _validator(http).validate_address_for_delivery("Vieux-Port")
    assert result == {"valid": False, "error": "Adresse introuvable", "distance": None}


def test_unexpected_payload_never_raises():
    http = FakeHttp(FakeResponse([{"unexpected": True}]))
    result = _validator(http).validate_address_for_delivery("Vieux-Port")
    assert result["valid"] is False
    assert result["error"]


@pytest.mark.parametrize(
    "address,expected",
    [("3 quai du Port, 13002 Marseille", "13002"), ("no digits here", None), ("tel 0491234567", None)],
)
def test_extract_zip(address, expected):
    assert extract_zip(address) == expected


def test_haversine_marseille_lyon():
    assert haversine_km(*MARSEILLE, 45.764, 4.8357) == pytest.approx(278, abs=5)
