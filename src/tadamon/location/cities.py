"""
Static city registry for the "manual city" location mode.

Cities are configured in `defaults.yaml` (`cities:`). Onboarding forms send whatever
the user picked or typed ("Casablanca", "casa", "الدار البيضاء"), so lookups are
tolerant of case, accents, separators and known aliases.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from functools import lru_cache

from tadamon.config.settings import CityDefinition, Settings, get_settings
from tadamon.domain.errors import UnknownCity
from tadamon.domain.models import GeoPoint


@dataclass(frozen=True)
class City:
    """One registry entry."""

    id: str
    name: str
    point: GeoPoint


def _normalize(value: str) -> str:
    # NFKD + dropping combining marks folds "Fès" onto "fes"; Arabic letters are untouched.
    decomposed = unicodedata.normalize("NFKD", value.strip().casefold())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.replace(" ", "").replace("_", "").replace("-", "")


class CityRegistry:
    """Read-only lookup table from city names/aliases to coordinates."""

    def __init__(self, cities: dict[str, CityDefinition]):
        self._cities: dict[str, City] = {}
        self._keys: dict[str, str] = {}
        for city_id, definition in cities.items():
            city = City(
                id=city_id,
                name=definition.name,
                point=GeoPoint(latitude=definition.lat, longitude=definition.lng),
            )
            self._cities[city_id] = city
            for name in [city_id, definition.name, *definition.aliases]:
                key = _normalize(name)
                if key:
                    self._keys.setdefault(key, city_id)

    def __len__(self) -> int:
        return len(self._cities)

    def all(self) -> list[City]:
        return sorted(self._cities.values(), key=lambda c: c.name)

    def find(self, name: str | None) -> City | None:
        """Return the matching city, or None when `name` is empty or unknown."""
        if not name:
            return None
        city_id = self._keys.get(_normalize(name))
        return self._cities.get(city_id) if city_id is not None else None

    def lookup(self, name: str) -> City:
        """Return the matching city or raise `UnknownCity`."""
        city = self.find(name)
        if city is None:
            raise UnknownCity(f"Unknown city: {name!r}", details={"city": name})
        return city


@lru_cache
def get_city_registry() -> CityRegistry:
    """Registry built from the global settings (cached)."""
    return CityRegistry(get_settings().cities)


def build_city_registry(settings: Settings) -> CityRegistry:
    return CityRegistry(settings.cities)
