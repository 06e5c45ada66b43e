# app/services/geocoding_service.py
"""
Address ⇄ coordinates lookups against a Nominatim-compatible server.
Optional enrichment only: any failure is logged and returns None so a
request is never rejected because geocoding is down.
"""

from typing import Optional
import requests
from app.config import settings
from app.schemas.ambulance_request import Coordinates
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _get(path: str, params: dict):
    resp = requests.get(
        f"{settings.GEOCODER_URL.rstrip('/')}/{path}",
        params={"format": "json", **params},
        headers={"User-Agent": settings.GEOCODER_USER_AGENT},
        timeout=settings.GEOCODER_TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    return resp.json()


def resolve_address(query: str) -> Optional[Coordinates]:
    """Best match for a free-text address, or None."""
    if not query or not query.strip():
        return None
    try:
        results = _get("search", {"q": query, "limit": 1})
    except requests.exceptions.RequestException as e:
        logger.warning(f"Geocoding failed for '{query}': {e}")
        return None
    except ValueError:
        logger.warning(f"Geocoder returned non-JSON for '{query}'")
        return None

    if not results:
        logger.info(f"No geocoding match for '{query}'")
        return None
    try:
        return Coordinates(latitude=float(results[0]["lat"]), longitude=float(results[0]["lon"]))
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Unexpected geocoder payload for '{query}': {e}")
        return None


def reverse_geocode(latitude: float, longitude: float) -> Optional[str]:
    """Display address for a coordinate pair, or None."""
    try:
        result = _get("reverse", {"lat": latitude, "lon": longitude})
    except requests.exceptions.RequestException as e:
        logger.warning(f"Reverse geocoding failed for ({latitude}, {longitude}): {e}")
        return None
    except ValueError:
        logger.warning(f"Geocoder returned non-JSON for ({latitude}, {longitude})")
        return None
    if not isinstance(result, dict):
        return None
    return result.get("display_name")
