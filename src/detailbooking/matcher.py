"""Fuzzy vehicle search over the static catalog."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .catalog import load_catalog
from .models import CatalogEntry, Confidence, MatchConfidence, SizeClass, VehicleMatch

MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT = 10
HIGH_CONFIDENCE_SCORE = 80
MEDIUM_CONFIDENCE_SCORE = 30
WORD_MATCH_SCORE = 5

_VAN_KEYWORDS = ("van", "transit", "sprinter", "crafter")
_SUV_KEYWORDS = (
    "suv",
    "4x4",
    "range rover",
    "land cruiser",
    "x5",
    "x6",
    "x7",
    "q7",
    "q8",
    "gle",
    "gls",
)
_ESTATE_KEYWORDS = ("estate", "avant", "touring", "wagon", "5 series", "e class", "a6", "passat")
_SMALL_KEYWORDS = ("mini", "smart", "aygo", "up", "fiesta", "polo", "corsa", "micra")


@dataclass(frozen=True, slots=True)
class _IndexedEntry:
    entry: CatalogEntry
    full: str
    make_model: str
    make: str
    model: str
    trim: str


def _index(entry: CatalogEntry) -> _IndexedEntry:
    make = entry.make.strip().casefold()
    model = entry.model.strip().casefold()
    trim = entry.trim.strip().casefold()
    return _IndexedEntry(
        entry=entry,
        full=f"{entry.make} {entry.model} {entry.trim}".strip().casefold(),
        make_model=f"{entry.make} {entry.model}".strip().casefold(),
        make=make,
        model=model,
        trim=trim,
    )


def _score(item: _IndexedEntry, term: str, words: list[str]) -> int:
    if item.full == term:
        return 100
    if item.make_model == term:
        return 90
    if item.make == term:
        return 80
    if item.model == term:
        return 70
    if item.full.startswith(term):
        return 60
    if item.make_model.startswith(term):
        return 50
    if item.make.startswith(term):
        return 40
    if item.model.startswith(term):
        return 35
    if term in item.full:
        return 30
    if term in item.make_model:
        return 25
    if term in item.make:
        return 20
    if term in item.model:
        return 15
    if term in item.trim:
        return 10
    hits = sum(1 for word in words if word in item.make or word in item.model or word in item.trim)
    return WORD_MATCH_SCORE * hits


def _to_match(entry: CatalogEntry, score: int) -> VehicleMatch:
    return VehicleMatch(
        make=entry.make,
        model=entry.model,
        trim=entry.trim,
        size_class=entry.size_class,
        match_score=score,
        display_name=f"{entry.make} {entry.model} {entry.trim}".strip(),
    )


def match_confidence(score: int) -> Confidence:
    if score >= HIGH_CONFIDENCE_SCORE:
        return "high"
    if score >= MEDIUM_CONFIDENCE_SCORE:
        return "medium"
    return "low"


def legacy_confidence(score: int) -> MatchConfidence:
    if score >= HIGH_CONFIDENCE_SCORE:
        return "exact"
    if score >= MEDIUM_CONFIDENCE_SCORE:
        return "partial"
    return "fallback"


def get_fallback_size(make: str, model: str) -> SizeClass:
    """Guess a size class from keywords when the catalog has no answer."""
    term = f"{make} {model}".casefold()
    if any(keyword in term for keyword in _VAN_KEYWORDS):
        return "XL"
    if any(keyword in term for keyword in _SUV_KEYWORDS):
        return "XL"
    if any(keyword in term for keyword in _ESTATE_KEYWORDS):
        return "L"
    if any(keyword in term for keyword in _SMALL_KEYWORDS):
        return "S"
    return "M"


class VehicleMatcher:
    """Scores catalog entries against free-text vehicle descriptions."""

    def __init__(self, entries: Iterable[CatalogEntry] | None = None) -> None:
        source = load_catalog() if entries is None else entries
        self._items = tuple(_index(entry) for entry in source)

    def __len__(self) -> int:
        return len(self._items)

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[VehicleMatch]:
        """Return matches ordered by score, highest first.

        Entries with equal scores keep catalog order. Queries shorter than
        two characters return an empty list.
        """
        if not isinstance(query, str) or limit <= 0:
            return []
        term = query.strip().casefold()
        if len(term) < MIN_QUERY_LENGTH:
            return []
        words = term.split()
        scored: list[tuple[int, CatalogEntry]] = []
        for item in self._items:
            score = _score(item, term, words)
            if score > 0:
                scored.append((score, item.entry))
        # sort() is stable, so ties stay in catalog order.
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [_to_match(entry, score) for score, entry in scored[:limit]]

    def match_exact(self, make: str, model: str, trim: str | None = None) -> VehicleMatch | None:
        wanted_make = make.strip().casefold()
        wanted_model = model.strip().casefold()
        wanted_trim = trim.strip().casefold() if trim else None
        for item in self._items:
            if item.make != wanted_make or item.model != wanted_model:
                continue
            if wanted_trim is not None and item.trim != wanted_trim:
                continue
            return _to_match(item.entry, 100)
        return None

    def detect_vehicle(self, make: str, model: str) -> tuple[VehicleMatch, MatchConfidence] | None:
        """Best catalog match for a make/model pair with its legacy confidence label."""
        results = self.search(f"{make} {model}".strip(), 1)
        if not results:
            return None
        best = results[0]
        return best, legacy_confidence(best.match_score)
