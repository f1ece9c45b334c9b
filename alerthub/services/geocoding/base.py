"""
Reverse geocoding for report locations.

Providers turn (lat, lng) into {address, city, state, country, provider}.
A provider never raises: transport errors, bad statuses and empty answers
all come back as empty_result(), and the resolver moves on to the next one.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

import requests

from alerthub.core.settings import settings

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("address", "city", "state", "country")


def empty_result(provider: str) -> Dict[str, Optional[str]]:
    result: Dict[str, Optional[str]] = dict.fromkeys(ADDRESS_FIELDS)
    result["provider"] = provider
    return result


def coordinate_fallback(latitude: float, longitude: float) -> Dict[str, Optional[str]]:
    """Deterministic result used when no provider could resolve the point."""
    result = empty_result("fallback")
    result["address"] = f"{latitude}, {longitude}"
    return result


class GeocodingProvider(ABC):
    """
    Base reverse-geocoding provider.

    Subclasses implement _lookup() and may let it raise; reverse_geocode()
    turns any failure into an empty result.
    """

    name = "unknown"

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.GEOCODING_TIMEOUT_SECONDS

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        try:
            found = self._lookup(latitude, longitude)
        except Exception as e:
            logger.warning(f"{self.name} reverse-geocode error: {e}")
            return empty_result(self.name)
        if not found:
            return empty_result(self.name)

        result = empty_result(self.name)
        result.update({key: found.get(key) for key in ADDRESS_FIELDS})
        return result

    @abstractmethod
    def _lookup(self, latitude: float, longitude: float) -> Optional[Dict[str, Optional[str]]]:
        raise NotImplementedError

    def _get_json(self, url: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Optional[Any]:
        resp = requests.get(url, params=params, headers=headers, timeout=self.timeout)
        if resp.status_code != 200:
            logger.warning(f"{self.name} reverse-geocode failed with status {resp.status_code}")
            return None
        return resp.json()
