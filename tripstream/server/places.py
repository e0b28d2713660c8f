"""
Places lookups.

Thin client over the Places Web Service text search and photo
endpoints, plus the /api/places/search router. Photo URLs are resolved
by reading the photo endpoint's redirect Location without downloading
the image.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from tripstream.server.config import get_server_config
from tripstream.shared.contracts.plan_output import Coords


logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
MIN_RADIUS_METERS = 200
MAX_RADIUS_METERS = 50000


class PlacesError(Exception):
    """A Places request failed or returned a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class PlaceHit:
    """One text-search result."""

    place_id: str
    name: str
    lat: float
    lng: float
    address: Optional[str] = None
    photo_reference: Optional[str] = None

    @property
    def name_key(self) -> str:
        return self.name.lower().strip()


def clamp_radius(radius_meters: int) -> int:
    return max(MIN_RADIUS_METERS, min(radius_meters, MAX_RADIUS_METERS))


class PlacesClient:
    """Synchronous Places client; safe to share across worker threads."""

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.Client] = None,
        timeout_s: float = 10.0,
        base_url: str = PLACES_BASE_URL,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self._client.close()

    def text_search(
        self,
        query: str,
        center: Optional[Coords] = None,
        radius_meters: Optional[int] = None,
        max_results: int = 4,
    ) -> List[PlaceHit]:
        """
        Run a text search, optionally biased around a center.

        Args:
            query: Free-text query
            center: Optional bias center
            radius_meters: Bias radius, clamped to 200..50000
            max_results: Maximum hits returned

        Returns:
            Hits that carry a place id and a location

        Raises:
            PlacesError: On a non-200 response
        """
        params: Dict[str, Any] = {"query": query, "key": self.api_key, "language": "en"}
        if center is not None and radius_meters:
            params["location"] = f"{center.lat},{center.lng}"
            params["radius"] = str(clamp_radius(radius_meters))

        response = self._client.get(f"{self.base_url}/textsearch/json", params=params)
        if response.status_code != 200:
            raise PlacesError(
                f"text search failed: {response.text[:300]}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError:
            return []
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            return []

        hits: List[PlaceHit] = []
        for raw in results[:max_results]:
            location = (raw.get("geometry") or {}).get("location") or {}
            if not raw.get("place_id") or "lat" not in location or "lng" not in location:
                continue
            photos = raw.get("photos") or []
            hits.append(
                PlaceHit(
                    place_id=raw["place_id"],
                    name=raw.get("name") or query,
                    lat=location["lat"],
                    lng=location["lng"],
                    address=raw.get("formatted_address"),
                    photo_reference=photos[0].get("photo_reference") if photos else None,
                )
            )
        return hits

    def resolve_photo_url(self, photo_reference: str, max_width: int = 640) -> Optional[str]:
        """Return the CDN URL a photo reference redirects to, if any."""
        params = {"key": self.api_key, "photo_reference": photo_reference, "maxwidth": str(max_width)}
        response = self._client.get(
            f"{self.base_url}/photo", params=params, follow_redirects=False
        )
        location = response.headers.get("location")
        if location:
            return location
        return None

    def find_photo_url(
        self, query: str, center: Optional[Coords] = None, radius_meters: Optional[int] = None
    ) -> Optional[str]:
        """Photo of the first hit for query that has one."""
        for hit in self.text_search(query, center, radius_meters, max_results=3):
            if not hit.photo_reference:
                continue
            url = self.resolve_photo_url(hit.photo_reference)
            if url:
                return url
        return None


_places_client: Optional[PlacesClient] = None


def get_places_client() -> Optional[PlacesClient]:
    """Shared client, or None when no Places key is configured."""
    global _places_client
    config = get_server_config()
    if not config.places_api_key:
        return None
    if _places_client is None:
        _places_client = PlacesClient(config.places_api_key)
    return _places_client


# =============================================================================
# Router
# =============================================================================

router = APIRouter(prefix="/api/places", tags=["places"])


class LocationBias(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lat: float
    lng: float
    radius_meters: int = Field(default=2500, alias="radiusMeters")


class PlaceSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    location_bias: Optional[LocationBias] = Field(default=None, alias="locationBias")
    max_results: int = Field(default=3, alias="maxResults")


@router.post("/search")
def search_place(
    request: PlaceSearchRequest,
    places: Optional[PlacesClient] = Depends(get_places_client),
) -> Any:
    """
    Find one place, preferring the first result that has a photo.

    Returns:
        {"place": {...}} or {"place": None} when nothing matched
    """
    if not request.query.strip():
        return JSONResponse(status_code=400, content={"error": "Missing 'query' string."})
    if places is None:
        return JSONResponse(status_code=500, content={"error": "Missing PLACES_API_KEY on server."})

    center = None
    radius = None
    if request.location_bias is not None:
        center = Coords(lat=request.location_bias.lat, lng=request.location_bias.lng)
        radius = request.location_bias.radius_meters

    limit = max(1, min(10, request.max_results))
    try:
        hits = places.text_search(request.query, center, radius, max_results=limit)
    except PlacesError as e:
        logger.warning(f"[places] Text search failed: {e}")
        return JSONResponse(status_code=e.status_code or 502, content={"error": str(e)})
    except httpx.HTTPError as e:
        logger.exception("[places] Text search transport error")
        return JSONResponse(status_code=502, content={"error": str(e)})

    if not hits:
        return {"place": None}

    chosen = hits[0]
    photo_url = None
    for hit in hits:
        if not hit.photo_reference:
            continue
        try:
            photo_url = places.resolve_photo_url(hit.photo_reference)
        except httpx.HTTPError as e:
            logger.info(f"[places] Photo lookup failed for {hit.place_id}: {e}")
            continue
        if photo_url:
            chosen = hit
            break

    place: Dict[str, Any] = {
        "id": chosen.place_id,
        "displayName": {"text": chosen.name},
        "location": {"latitude": chosen.lat, "longitude": chosen.lng},
        "googleMapsUri": f"https://www.google.com/maps/place/?q=place_id:{chosen.place_id}",
    }
    if chosen.address:
        place["formattedAddress"] = chosen.address
    if photo_url:
        place["photoUrl"] = photo_url
    return {"place": place}
