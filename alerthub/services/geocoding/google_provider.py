from typing import Dict, List, Optional

from .base import GeocodingProvider

# First component type found wins
CITY_TYPES = ("locality", "postal_town", "administrative_area_level_2")


def _components_by_type(components: List[Dict]) -> Dict[str, str]:
    by_type: Dict[str, str] = {}
    for component in components:
        for component_type in component.get("types", []):
            by_type.setdefault(component_type, component.get("long_name"))
    return by_type


class GoogleMapsProvider(GeocodingProvider):
    """Google Maps Geocoding API. Only registered when GEOCODING_PROVIDER=google and a key is set."""

    name = "google"
    BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: Optional[str], timeout: Optional[float] = None):
        super().__init__(timeout)
        self.api_key = api_key

    def _lookup(self, latitude: float, longitude: float) -> Optional[Dict[str, Optional[str]]]:
        if not self.api_key:
            return None

        data = self._get_json(self.BASE_URL, {"latlng": f"{latitude},{longitude}", "key": self.api_key})
        results = (data or {}).get("results") or []
        if not results:
            return None

        best = results[0]
        parts = _components_by_type(best.get("address_components") or [])
        return {
            "address": best.get("formatted_address"),
            "city": next((parts[t] for t in CITY_TYPES if t in parts), None),
            "state": parts.get("administrative_area_level_1"),
            "country": parts.get("country"),
        }
