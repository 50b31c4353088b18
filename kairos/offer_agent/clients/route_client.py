"""
Route measurement between two street addresses.

The core only depends on the `RouteOracle` protocol. `GoogleRouteClient` implements it with the
Google Geocoding and Directions APIs: both addresses are geocoded concurrently, then the first
leg of the first route gives the distance and duration.
"""

import asyncio
import re
from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from kairos.offer_agent.utils.logger import get_logger

logger = get_logger(__name__)

GOOGLE_MAPS_BASE_URL = "https://maps.googleapis.com/"


class RouteMeasurement(BaseModel):
    distance_km: float
    duration_min: int


@runtime_checkable
class RouteOracle(Protocol):
    async def measure(self, origin: str, destination: str) -> RouteMeasurement | None:
        """Distance and duration between two addresses, or None when they cannot be measured."""
        ...


class NullRouteOracle:
    """Oracle used when no routing backend is configured: every measurement is unknown."""

    async def measure(self, origin: str, destination: str) -> RouteMeasurement | None:
        return None


###### Address normalisation ######

_COMPANY_SUFFIXES = re.compile(r"\s*\b(?:S\.A\.S\.?|S\.A\.?|Ltda\.?)", re.IGNORECASE)
_ABBREVIATIONS = (
    (re.compile(r"\bCl\b\.?", re.IGNORECASE), "Calle"),
    (re.compile(r"\b(?:Cra|Kr)\b\.?", re.IGNORECASE), "Carrera"),
    (re.compile(r"\bTv\b\.?", re.IGNORECASE), "Transversal"),
    (re.compile(r"\bDg\b\.?", re.IGNORECASE), "Diagonal"),
    (re.compile(r"\bAv\b\.?", re.IGNORECASE), "Avenida"),
)
_SYMBOLS = re.compile(r"[^\w\s,()]")
_SPACES = re.compile(r"\s+")


def clean_address(address: str, region_suffix: str | None = "Bogota, Colombia") -> str:
    """
    Normalises a street address as displayed by the app so the geocoder can resolve it.

    Ex: "Cra. 7 #45-10, Edificio S.A.S." -> "Carrera 7 45 10, Edificio, Bogota, Colombia"
    """
    cleaned = _COMPANY_SUFFIXES.sub("", address)
    for pattern, replacement in _ABBREVIATIONS:
        cleaned = pattern.sub(replacement, cleaned)
    cleaned = cleaned.replace("#", " ").replace("-", " ")
    cleaned = _SYMBOLS.sub("", cleaned)
    cleaned = _SPACES.sub(" ", cleaned).strip().strip(",").strip()

    if region_suffix:
        region_parts = [part.strip().lower() for part in region_suffix.split(",") if part.strip()]
        if not any(part in cleaned.lower() for part in region_parts):
            cleaned = f"{cleaned}, {region_suffix}"
    return cleaned


###### Google API payloads ######


class Location(BaseModel):
    lat: float
    lng: float


class Geometry(BaseModel):
    location: Location


class GeocodingResult(BaseModel):
    geometry: Geometry


class GeocodingResponse(BaseModel):
    status: str
    results: list[GeocodingResult] = []


class ValueWithText(BaseModel):
    value: int
    text: str | None = None


class Leg(BaseModel):
    distance: ValueWithText  # meters
    duration: ValueWithText  # seconds


class Route(BaseModel):
    legs: list[Leg] = []


class DirectionsResponse(BaseModel):
    status: str
    routes: list[Route] = []


class GoogleRouteClient:
    """
    RouteOracle backed by Google Maps.

    Never raises into the caller: transport errors, timeouts, non-OK statuses and malformed payloads
    are logged and turned into None.

    Example:
        async with GoogleRouteClient(api_key="...") as oracle:
            measurement = await oracle.measure("Calle 80 # 10-20", "Carrera 7 # 45-10")
    """

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 10.0,
        region_suffix: str | None = "Bogota, Colombia",
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._region_suffix = region_suffix
        self._client = client or httpx.AsyncClient(
            base_url=GOOGLE_MAPS_BASE_URL,
            timeout=httpx.Timeout(timeout=timeout_seconds),
        )

    async def __aenter__(self) -> "GoogleRouteClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, url: str, params: dict[str, str]) -> object | None:
        try:
            response = await self._client.get(url, params={**params, "key": self._api_key})
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[ROUTE] Request to {url} failed: {e}")
            return None

    async def geocode(self, address: str) -> str | None:
        """Returns "lat,lng" for the address, or None."""
        cleaned = clean_address(address, self._region_suffix)
        logger.debug(f"[ROUTE] Geocoding '{cleaned}'")
        payload = await self._get_json("maps/api/geocode/json", {"address": cleaned})
        if payload is None:
            return None
        try:
            response = GeocodingResponse.model_validate(payload)
        except ValidationError as e:
            logger.error(f"[ROUTE] Unexpected geocoding payload: {e}")
            return None

        if response.status != "OK" or not response.results:
            logger.warning(f"[ROUTE] No coordinates for '{cleaned}'. Status: {response.status}")
            return None
        location = response.results[0].geometry.location
        return f"{location.lat},{location.lng}"

    async def measure(self, origin: str, destination: str) -> RouteMeasurement | None:
        origin_coords, destination_coords = await asyncio.gather(
            self.geocode(origin), self.geocode(destination)
        )
        if origin_coords is None or destination_coords is None:
            logger.warning("[ROUTE] Could not geocode origin and/or destination.")
            return None

        payload = await self._get_json(
            "maps/api/directions/json",
            {"origin": origin_coords, "destination": destination_coords},
        )
        if payload is None:
            return None
        try:
            response = DirectionsResponse.model_validate(payload)
        except ValidationError as e:
            logger.error(f"[ROUTE] Unexpected directions payload: {e}")
            return None

        if response.status != "OK" or not response.routes or not response.routes[0].legs:
            logger.warning(f"[ROUTE] No route found. Status: {response.status}")
            return None

        leg = response.routes[0].legs[0]
        measurement = RouteMeasurement(
            distance_km=leg.distance.value / 1000.0,
            duration_min=leg.duration.value // 60,
        )
        logger.info(
            f"[ROUTE] Distance={measurement.distance_km} km, Duration={measurement.duration_min} min"
        )
        return measurement
