from .base import GeocodingProvider, coordinate_fallback, empty_result
from .resolver import GeocodingResolver

__all__ = ["GeocodingProvider", "GeocodingResolver", "coordinate_fallback", "empty_result"]
