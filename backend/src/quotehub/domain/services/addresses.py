"""Address normalisation strategies for geocoding.

Each strategy turns free text into a geocoder query, or ``None`` when it has
nothing to offer.  The router evaluates them in order and stops at the
first query that resolves inside the service region.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable

from quotehub.domain.value_objects import ServiceRegion

GeocodeStrategy = Callable[[str, ServiceRegion], "str | None"]

_STREET_RE = re.compile(
    r"\b(?:calle|cll|cl|carrera|cra|kra|kr|avenida|av|transversal|tv|diagonal|dg)"
    r"\.?\s*\d+\s*(?:[a-z]\b)?(?:\s*bis\b)?",
    re.IGNORECASE,
)
_PLATE_RE = re.compile(r"(?:#|\bno\.?|\bn°)\s*\d+\s*[a-z]?\s*-\s*\d+", re.IGNORECASE)
_SPACES_RE = re.compile(r"\s+")


def fold(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SPACES_RE.sub(" ", stripped).strip().lower()


def contains_place(text: str, place: str) -> bool:
    """Whole-word, accent-insensitive containment check."""
    return re.search(rf"\b{re.escape(fold(place))}\b", fold(text)) is not None


# ── Strategies ───────────────────────────────────────────────
def raw_address(text: str, region: ServiceRegion) -> str | None:
    cleaned = text.strip()
    return cleaned or None


def strip_street_detail(text: str, region: ServiceRegion) -> str | None:
    """Drop street names, plate numbers and department names; keep the rest."""
    reduced = _PLATE_RE.sub(" ", text)
    reduced = _STREET_RE.sub(" ", reduced)
    for department in region.departments:
        reduced = re.sub(rf"\b{re.escape(department)}\b", " ", reduced, flags=re.IGNORECASE)
    reduced = re.sub(rf"\b{re.escape(region.country)}\b", " ", reduced, flags=re.IGNORECASE)

    parts = [_SPACES_RE.sub(" ", p).strip(" .-") for p in reduced.split(",")]
    parts = [p for p in parts if p]
    if not parts:
        return None
    return region.qualify(", ".join(parts))


def extract_known_city(text: str, region: ServiceRegion) -> str | None:
    # Longest names first so "Santa Marta" wins over any shorter overlap.
    for city in sorted(region.known_cities, key=len, reverse=True):
        if contains_place(text, city):
            return region.qualify(city)
    return None


DEFAULT_STRATEGIES: tuple[tuple[str, GeocodeStrategy], ...] = (
    ("raw", raw_address),
    ("normalized", strip_street_detail),
    ("city", extract_known_city),
)
