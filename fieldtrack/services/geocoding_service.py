"""Reverse geocoding (lat/lon -> human readable address).

Best effort only: any network or payload problem yields ``None`` so visit
creation never waits on, or fails because of, the external service.
"""

import logging
from dataclasses import dataclass
from typing import Any

import requests

from fieldtrack.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NominatimConfig:
    base_url: str = "https://nominatim.openstreetmap.org/reverse"
    zoom: int = 18
    addressdetails: int = 1
    timeout_seconds: float = 5.0
    user_agent: str = "fieldtrack/0.1.0 (reverse-geocode; please set your own UA)"

    @classmethod
    def from_settings(cls) -> "NominatimConfig":
        return cls(
            base_url=settings.NOMINATIM_URL,
            timeout_seconds=settings.GEOCODING_TIMEOUT_SECONDS,
            user_agent=settings.GEOCODING_USER_AGENT,
        )


def nominatim_reverse_raw(lat: float, lon: float, cfg: NominatimConfig) -> dict[str, Any] | None:
    params = {
        "format": "json",
        "lat": f"{lat:.8f}",
        "lon": f"{lon:.8f}",
        "zoom": str(cfg.zoom),
        "addressdetails": str(cfg.addressdetails),
    }
    try:
        response = requests.get(
            cfg.base_url,
            params=params,
            headers={"User-Agent": cfg.user_agent, "Accept": "application/json"},
            timeout=cfg.timeout_seconds,
        )
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as exc:
        logger.warning("Reverse geocoding failed for %.5f,%.5f: %s", lat, lon, exc)
        return None
    except ValueError:
        logger.warning("Reverse geocoding returned invalid JSON for %.5f,%.5f", lat, lon)
        return None

    if not isinstance(payload, dict):
        return None
    return payload


class NominatimReverseGeocoder:
    """Callable geocoder: ``geocoder(lat, lon) -> address | None``."""

    def __init__(self, config: NominatimConfig | None = None):
        self._cfg = config or NominatimConfig.from_settings()

    def __call__(self, lat: float, lon: float) -> str | None:
        raw = nominatim_reverse_raw(lat, lon, self._cfg)
        if raw is None:
            return None
        address = str(raw.get("display_name", "") or "").strip()
        return address or None


def default_geocoder() -> NominatimReverseGeocoder | None:
    if not settings.GEOCODING_ENABLED:
        return None
    return NominatimReverseGeocoder()
