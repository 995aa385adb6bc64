from __future__ import annotations

from typing import Any, Final, Mapping

from ..core.types import PlaceName
from ._client import DEFAULT_USER_AGENT, JsonSource

REVERSE_URL: Final[str] = "https://nominatim.openstreetmap.org/reverse"

# Most specific first.
_LOCALITY_KEYS: Final[tuple[str, ...]] = ("city", "town", "village", "hamlet", "municipality")


def place_from_address(address: Mapping[str, Any]) -> PlaceName | None:
    for key in (*_LOCALITY_KEYS, "county", "state"):
        value = address.get(key)
        if isinstance(value, str) and value.strip():
            return PlaceName(
                name=value,
                region=str(address.get("state") or ""),
                country=str(address.get("country") or ""),
            )
    return None


class NominatimReverseGeocoder(JsonSource):
    """Names a coordinate via OpenStreetMap Nominatim; requires a User-Agent."""

    source_name = "nominatim"

    def __init__(self, *, user_agent: str = DEFAULT_USER_AGENT, language: str = "en", **kwargs: Any) -> None:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("User-Agent", user_agent)
        super().__init__(headers=headers, **kwargs)
        self.language = language

    async def resolve_name(self, latitude: float, longitude: float) -> PlaceName | None:
        payload = await self._get_mapping(
            REVERSE_URL,
            {
                "lat": latitude,
                "lon": longitude,
                "format": "jsonv2",
                "zoom": 10,
                "accept-language": self.language,
            },
            target=f"{latitude:.2f},{longitude:.2f}",
        )
        address = payload.get("address")
        if not isinstance(address, Mapping):
            return None
        return place_from_address(address)


__all__ = ["NominatimReverseGeocoder", "REVERSE_URL", "place_from_address"]
