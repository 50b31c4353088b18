"""
Pure extractors turning raw screen labels into structured values.

Every function is total: it returns the parsed value, or None when the label does not match.
None means "unknown", never zero.
"""

import re
from collections.abc import Sequence

from pydantic import BaseModel

from kairos.offer_agent.constants import CURRENCY_PREFIXES

# "~ 1.5 km", "~800 m", "800 metros"
_PICKUP_KM_PATTERN = re.compile(r"~\s*(\d+(?:[.,]\d+)?)\s*km\b", re.IGNORECASE)
_PICKUP_METERS_PATTERN = re.compile(r"~?\s*(\d+(?:[.,]\d+)?)\s*(?:metros?|m)\b", re.IGNORECASE)
_BARE_KM_PATTERN = re.compile(r"^\s*(\d+(?:[.,]\d+)?)\s*km\s*$", re.IGNORECASE)

# "28 min", "28 minutos", "12.5 km"
_DURATION_PATTERN = re.compile(r"(\d+)\s*min(?:uto)?s?\b", re.IGNORECASE)
_DISTANCE_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*km\b", re.IGNORECASE)

_RATING_PATTERN = re.compile(r"^\s*(\d(?:[.,]\d{1,2}))\s*$")
_TRIP_COUNT_PATTERN = re.compile(r"^\s*\(\s*(\d{1,3}(?:[.,]\d{3})*|\d+)\s*\)\s*$")
_COMPOUND_RATING_PATTERN = re.compile(r"(\d[.,]\d{1,2})\s*\(\s*(\d{1,3}(?:[.,]\d{3})*|\d+)\s*\)")

_CURRENCY_ALTERNATION = "|".join(re.escape(prefix) for prefix in CURRENCY_PREFIXES)
_PRICE_PATTERN = re.compile(
    rf"(?:{_CURRENCY_ALTERNATION})\s*(\d{{1,3}}(?:[.,]\d{{3}})+|\d+)(?![\d.,]*\d)"
)
_BARE_COUNTER_PATTERN = re.compile(r"^\s*\(?\s*\d+\s*\)?\s*$")

MAX_RATING = 5.0


class TripEstimate(BaseModel):
    minutes: int
    distance_km: float


class RatingInfo(BaseModel):
    rating: float
    trip_count: int


def _to_float(raw: str) -> float | None:
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        return None


def _strip_separators(raw: str) -> str:
    return raw.replace(".", "").replace(",", "")


def extract_pickup_distance_km(text: str | None) -> float | None:
    """
    Pickup distance shown on a list entry: "~1.5 km", "~ 800 m" or "800 metros".

    Labels that also carry a duration ("25 min 12 km") are trip estimates, not pickup distances.
    """
    if not text or _DURATION_PATTERN.search(text):
        return None

    match = _PICKUP_KM_PATTERN.search(text) or _BARE_KM_PATTERN.match(text)
    if match:
        return _to_float(match.group(1))

    match = _PICKUP_METERS_PATTERN.search(text)
    if match:
        meters = _to_float(match.group(1))
        return meters / 1000 if meters is not None else None
    return None


def extract_trip_estimate(text: str | None) -> TripEstimate | None:
    """UI estimate of the A-B trip; both "N min" and "D km" must appear in the same label."""
    if not text:
        return None
    duration = _DURATION_PATTERN.search(text)
    distance = _DISTANCE_PATTERN.search(text)
    if not duration or not distance:
        return None
    distance_km = _to_float(distance.group(1))
    if distance_km is None:
        return None
    return TripEstimate(minutes=int(duration.group(1)), distance_km=distance_km)


def parse_rating(text: str | None) -> float | None:
    """A short "4.85" style label, 1 or 2 decimals, within [0, 5]."""
    if not text:
        return None
    match = _RATING_PATTERN.match(text)
    if not match:
        return None
    value = _to_float(match.group(1))
    if value is None or not 0.0 <= value <= MAX_RATING:
        return None
    return value


def parse_trip_count(text: str | None) -> int | None:
    """A "(35)" style label."""
    if not text:
        return None
    match = _TRIP_COUNT_PATTERN.match(text)
    if not match:
        return None
    return int(_strip_separators(match.group(1)))


def extract_rating_pair(labels: Sequence[str | None]) -> RatingInfo | None:
    """
    Finds the passenger rating and trip count among the labels of one list entry.

    The app renders them as adjacent sibling labels ("5.0", "(35)"), so a rating only counts when
    the very next label is a trip count. A single compound label ("4.9 (120)") is accepted too.
    Returns None unless both values are found.
    """
    for current, following in zip(labels, list(labels[1:]) + [None]):
        rating = parse_rating(current)
        if rating is not None:
            trip_count = parse_trip_count(following)
            if trip_count is not None:
                return RatingInfo(rating=rating, trip_count=trip_count)
            continue

        if current:
            match = _COMPOUND_RATING_PATTERN.search(current)
            if match:
                compound_rating = _to_float(match.group(1))
                if compound_rating is not None and compound_rating <= MAX_RATING:
                    return RatingInfo(
                        rating=compound_rating,
                        trip_count=int(_strip_separators(match.group(2))),
                    )
    return None


def is_currency_text(text: str | None) -> bool:
    if not text:
        return False
    return text.lstrip().startswith(CURRENCY_PREFIXES)


def extract_price(text: str | None) -> float | None:
    """Currency-prefixed amount with thousands separators: "COL$8,600" -> 8600."""
    if not text:
        return None
    match = _PRICE_PATTERN.search(text)
    if not match:
        return None
    return float(_strip_separators(match.group(1)))


def is_bare_counter(text: str | None) -> bool:
    """Labels made only of a number, optionally in parentheses ("3", "(35)")."""
    if not text:
        return False
    return _BARE_COUNTER_PATTERN.match(text) is not None
