import logging
from typing import Dict, List, Optional

from alerthub.core.settings import settings
from .base import GeocodingProvider, coordinate_fallback
from .nominatim_provider import NominatimProvider
from .google_provider import GoogleMapsProvider

logger = logging.getLogger(__name__)


class GeocodingResolver:
    """
    Resolves coordinates to an address through providers in priority order.

    Rules:
    - Default: Nominatim (no API key required).
    - If GEOCODING_PROVIDER='google' AND GOOGLE_MAPS_API_KEY is set,
      Google is tried first and Nominatim is the fallback.
    - If nobody resolves an address, the address is the raw "lat, lng" string.
    - Never raises upstream exceptions.
    """

    def __init__(self, providers: Optional[List[GeocodingProvider]] = None):
        self.providers = providers if providers is not None else self._default_providers()

    @staticmethod
    def _default_providers() -> List[GeocodingProvider]:
        providers: List[GeocodingProvider] = []
        provider_name = (settings.GEOCODING_PROVIDER or "nominatim").lower()
        if provider_name == "google" and settings.GOOGLE_MAPS_API_KEY:
            providers.append(GoogleMapsProvider(api_key=settings.GOOGLE_MAPS_API_KEY))
            logger.info("Geocoding provider registered: google")
        providers.append(NominatimProvider())
        logger.info("Geocoding provider registered: nominatim")
        return providers

    def resolve(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        for provider in self.providers:
            try:
                result = provider.reverse_geocode(latitude, longitude)
            except Exception as e:
                logger.warning(f"Geocoding provider {type(provider).__name__} raised: {e}")
                continue
            if result and result.get("address"):
                return result

        logger.info(f"Geocoding unavailable for ({latitude}, {longitude}), using coordinates")
        return coordinate_fallback(latitude, longitude)
