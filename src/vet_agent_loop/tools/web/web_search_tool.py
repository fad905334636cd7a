from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from vet_agent_loop.errors import TransientExternalError
from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args
from vet_agent_loop.tools.web.search_cache import SearchCache
from vet_agent_loop.tools.web.search_provider import SearchProvider


class WebSearchArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1, max_length=400)
    n: int = Field(default=5, ge=1, le=10)
    recencyDays: int | None = Field(default=None, gt=0)
    site: str | None = None


class WebSearchTool:
    def __init__(self, provider: SearchProvider, cache: SearchCache | None = None) -> None:
        self._provider = provider
        self._cache = cache or SearchCache()

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web for fresh or factual information like veterinary care, vaccination "
            "schedules, medication recalls, symptom information, or current prices. Use ONLY when "
            "you need up-to-date information you cannot answer from existing knowledge. Do NOT use "
            "for finding locations or businesses - use map_search instead."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query focusing on current/factual information"},
                "n": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 10,
                    "default": 5,
                    "description": "Number of results to return (1-10)",
                },
                "recencyDays": {"type": "integer", "minimum": 1, "description": "Only return results from last N days"},
                "site": {"type": "string", "description": 'Restrict search to specific site (e.g., "veterinary.org")'},
            },
            "required": ["query"],
            "additionalProperties": False,
        }

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=15.0, retries=1, retry_delay=2.0)

    def validate(self, tool_input: Any) -> WebSearchArgs:
        return parse_args(self.name, WebSearchArgs, tool_input)

    async def execute(self, args: WebSearchArgs, context: ToolContext) -> ToolResult:
        query = args.query.strip()
        key = SearchCache.key(query, args.n, args.recencyDays, args.site)
        cached = self._cache.get(key)
        if cached is not None:
            logger.info(f"[{context.request_id}] Web search cache hit: {query!r}")
            return ToolResult.success(self._payload(query, cached, cached=True))

        logger.info(f"[{context.request_id}] Web search via {self._provider.provider_name}: {query!r}")
        try:
            hits = await self._provider.search(query, args.n, recency_days=args.recencyDays, site=args.site)
        except httpx.TimeoutException as ex:
            raise TransientExternalError("Search request timed out") from ex
        except httpx.HTTPStatusError as ex:
            if ex.response.status_code >= 500 or ex.response.status_code == 429:
                raise TransientExternalError(str(ex)) from ex
            return ToolResult.failure(f"Web search failed: {ex}")
        except httpx.HTTPError as ex:
            raise TransientExternalError(f"Search request failed: {ex}") from ex

        self._cache.set(key, hits)
        return ToolResult.success(self._payload(query, hits, cached=False))

    @staticmethod
    def _payload(query: str, hits: list, *, cached: bool) -> dict:
        return {
            "query": query,
            "results": [h.to_dict() for h in hits],
            "cached": cached,
            "count": len(hits),
        }
