from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from vet_agent_loop.errors import TransientExternalError
from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args

_PLACES_NEARBY_URL = "https://places.googleapis.com/v1/places:searchNearby"
_FIELD_MASK = ",".join(
    f"places.{f}"
    for f in (
        "id",
        "displayName",
        "formattedAddress",
        "location",
        "rating",
        "userRatingCount",
        "businessStatus",
        "primaryType",
        "nationalPhoneNumber",
        "internationalPhoneNumber",
        "websiteUri",
        "googleMapsUri",
    )
)

PlaceType = Literal["veterinary_care", "pet_store", "animal_hospital", "pet_grooming"]


class MapSearchArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    maxResults: int = Field(default=10, ge=1, le=20)
    types: list[PlaceType] = Field(default_factory=lambda: ["veterinary_care", "pet_store"])


class MapSearchTool:
    def __init__(
        self,
        api_key: str,
        *,
        http_timeout: float = 12.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._http_timeout = http_timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "map_search"

    @property
    def description(self) -> str:
        return (
            "Search for nearby pet-related businesses (veterinarians, pet stores, animal hospitals, "
            "pet grooming) by location. Results are ranked by distance from the given coordinates. "
            "This is the ONLY tool for location-based searches."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": 'Type of pet service location (e.g., "veterinarian")'},
                "latitude": {"type": "number", "minimum": -90, "maximum": 90},
                "longitude": {"type": "number", "minimum": -180, "maximum": 180},
                "maxResults": {"type": "number", "minimum": 1, "maximum": 20, "default": 10},
                "types": {
                    "type": "array",
                    "items": {
                        "type": "string",
                        "enum": ["veterinary_care", "pet_store", "animal_hospital", "pet_grooming"],
                    },
                    "default": ["veterinary_care", "pet_store"],
                },
            },
            "required": ["query", "latitude", "longitude"],
            "additionalProperties": False,
        }

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=15.0, retries=2, retry_delay=1.0)

    def validate(self, tool_input: Any) -> MapSearchArgs:
        return parse_args(self.name, MapSearchArgs, tool_input)

    async def execute(self, args: MapSearchArgs, context: ToolContext) -> ToolResult:
        logger.info(
            f"[{context.request_id}] Map search: {args.query!r} near ({args.latitude}, {args.longitude})"
        )
        body = {
            "includedTypes": list(args.types),
            "maxResultCount": args.maxResults,
            "rankPreference": "DISTANCE",
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": args.latitude, "longitude": args.longitude},
                    "radius": 5000.0,
                }
            },
        }
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self._api_key,
            "X-Goog-FieldMask": _FIELD_MASK,
        }

        try:
            async with httpx.AsyncClient(timeout=self._http_timeout, transport=self._transport) as client:
                response = await client.post(_PLACES_NEARBY_URL, headers=headers, json=body)
        except httpx.HTTPError as ex:
            raise TransientExternalError(f"Google Places request failed: {ex}") from ex

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientExternalError(f"Google Places API error: HTTP {response.status_code}")
        if response.status_code >= 400:
            return ToolResult.failure(f"Google Places API error: HTTP {response.status_code}: {response.text[:200]}")

        places = [self._format_place(p) for p in response.json().get("places", [])]
        return ToolResult.success(
            {
                "query": args.query,
                "location": {"latitude": args.latitude, "longitude": args.longitude},
                "results": places,
                "count": len(places),
            }
        )

    @staticmethod
    def _format_place(place: dict) -> dict:
        return {
            "id": place.get("id"),
            "name": (place.get("displayName") or {}).get("text", ""),
            "address": place.get("formattedAddress", ""),
            "location": place.get("location"),
            "rating": place.get("rating"),
            "ratingCount": place.get("userRatingCount"),
            "status": place.get("businessStatus"),
            "type": place.get("primaryType"),
            "phone": place.get("internationalPhoneNumber") or place.get("nationalPhoneNumber"),
            "website": place.get("websiteUri"),
            "mapsUrl": place.get("googleMapsUri"),
        }
