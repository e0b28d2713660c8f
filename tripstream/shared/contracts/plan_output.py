"""
Plan output contract.

Defines the wire models shared by the streaming server and the client
engine: the strict plan item, suggestion records used for backfill,
the chat request, and the complete response document.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tripstream.plan.costs import normalize_cost


# Accepted spellings, preferred first
_DESCRIPTION_KEYS = ("short_description", "short_desc", "shortDescription")
_COST_KEYS = ("estimated_cost", "est_cost", "estSpend")

_MISSING = object()


def _first_present(raw: Dict[str, Any], keys) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return _MISSING


class PlanItem(BaseModel):
    """A single activity within a day. Immutable; replaced on update."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1, description="Activity title")
    short_description: str = Field(
        min_length=1, description="One-line description of the activity"
    )
    estimated_cost: Optional[str] = Field(
        default=None, description="Canonical cost: 'free', '$N' or '$A–$B'"
    )
    image_url: Optional[str] = Field(
        default=None, description="Photo URL attached by enrichment"
    )

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["PlanItem"]:
        """
        Validate an untrusted generator object field by field.

        Title and description must be non-empty strings (legacy
        description keys are accepted). A cost, when present, must be a
        string; it is normalized and dropped if unrecognized.

        Args:
            raw: Decoded JSON value

        Returns:
            PlanItem, or None when the object fails validation
        """
        if not isinstance(raw, dict):
            return None

        title = raw.get("title")
        description = _first_present(raw, _DESCRIPTION_KEYS)
        if not isinstance(title, str) or not title.strip():
            return None
        if not isinstance(description, str) or not description.strip():
            return None

        cost_raw = _first_present(raw, _COST_KEYS)
        if cost_raw is _MISSING or cost_raw is None:
            cost = None
        elif isinstance(cost_raw, str):
            cost = normalize_cost(cost_raw)
        else:
            return None

        image_url = raw.get("image_url")
        if not isinstance(image_url, str) or not image_url:
            image_url = None

        return cls(
            title=title,
            short_description=description,
            estimated_cost=cost,
            image_url=image_url,
        )

    def to_wire(self) -> Dict[str, str]:
        """Serialize with optional fields omitted."""
        return self.model_dump(exclude_none=True)


class Suggestion(BaseModel):
    """A nearby place suggested by the generator, used as backfill material."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(description="Place name")
    category: str = Field(default="", description="Place category")
    why: str = Field(default="", description="Why it is recommended")
    address: Optional[str] = None
    distance_meters: Optional[float] = Field(default=None, alias="distanceMeters")
    est_spend: Optional[str] = Field(default=None, alias="estSpend")
    hours: Optional[str] = None
    website: Optional[str] = None
    map_hint: Optional[str] = Field(default=None, alias="mapHint")
    tags: List[str] = Field(default_factory=list)


class Coords(BaseModel):
    """Latitude/longitude pair."""

    lat: float
    lng: float


class ChatRequest(BaseModel):
    """Request body for the chat endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="", description="Natural-language request")
    destination: Optional[str] = Field(default=None, description="Destination name")
    coords: Optional[Coords] = Field(default=None, description="Stay-area center")
    radius_meters: int = Field(default=2000, alias="radiusMeters", gt=0)
    preferences: Dict[str, Any] = Field(default_factory=dict)
    history: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def nights(self) -> Optional[int]:
        """Number of nights from preferences.duration.nights, if numeric."""
        duration = self.preferences.get("duration")
        if isinstance(duration, dict):
            nights = duration.get("nights")
            if isinstance(nights, (int, float)) and not isinstance(nights, bool):
                return int(nights)
        return None

    def is_plannable(self) -> bool:
        """A request needs a message and either a destination or coordinates."""
        return bool(self.message) and (bool(self.destination) or self.coords is not None)


class PlanResponse(BaseModel):
    """
    Contract for the complete plan document.

    planDays is indexed by day offset from trip start; each inner list
    is one day's activities, ordered morning to evening.
    """

    model_config = ConfigDict(populate_by_name=True)

    reply_text: str = Field(alias="replyText", description="Assistant reply text")
    suggestions: List[Suggestion] = Field(default_factory=list)
    plan_days: List[List[PlanItem]] = Field(default_factory=list, alias="planDays")
    note: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the wire field names."""
        out: Dict[str, Any] = {
            "replyText": self.reply_text,
            "suggestions": [
                s.model_dump(by_alias=True, exclude_none=True) for s in self.suggestions
            ],
            "planDays": [[item.to_wire() for item in day] for day in self.plan_days],
        }
        if self.note:
            out["note"] = self.note
        return out
