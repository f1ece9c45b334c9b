from typing import Dict, Optional

from alerthub.core.settings import settings
from .base import GeocodingProvider

CITY_KEYS = ("city", "town", "village", "municipality", "county")


class NominatimProvider(GeocodingProvider):
    """
    OpenStreetMap Nominatim. No API key; the usage policy requires an
    identifying User-Agent.
    """

    name = "nominatim"
    BASE_URL = "https://nominatim.openstreetmap.org/reverse"

    def __init__(self, user_agent: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.user_agent = user_agent or f"scam-alert-hub/{settings.APP_VERSION}"

    def _lookup(self, latitude: float, longitude: float) -> Optional[Dict[str, Optional[str]]]:
        data = self._get_json(
            self.BASE_URL,
            {"lat": latitude, "lon": longitude, "format": "jsonv2", "addressdetails": 1, "zoom": 18},
            headers={"User-Agent": self.user_agent, "Accept-Language": "en"},
        )
        if not data or "error" in data:
            return None

        parts = data.get("address") or {}
        return {
            "address": data.get("display_name"),
            "city": next((parts[key] for key in CITY_KEYS if parts.get(key)), None),
            "state": parts.get("state"),
            "country": parts.get("country"),
        }
