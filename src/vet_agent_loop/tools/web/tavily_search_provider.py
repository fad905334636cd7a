from datetime import date, timedelta

import httpx

from vet_agent_loop.tools.web.search_provider import WebHit

_TAVILY_SEARCH_URL = "https://api.tavily.com/search"
_TIMEOUT_SECONDS = 10


class TavilySearchProvider:
    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = _TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "Tavily"

    async def search(
        self,
        query: str,
        count: int,
        *,
        recency_days: int | None = None,
        site: str | None = None,
    ) -> list[WebHit]:
        body: dict = {
            "query": f"site:{site} {query}" if site else query,
            "max_results": count,
            "search_depth": "basic",
            "include_answer": False,
            "include_raw_content": False,
        }
        if recency_days:
            body["published_after"] = (date.today() - timedelta(days=recency_days)).isoformat()

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(_TAVILY_SEARCH_URL, headers=headers, json=body)

        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code} from Tavily API",
                request=response.request,
                response=response,
            )

        hits: list[WebHit] = []
        seen_urls: set[str] = set()
        for r in response.json().get("results", []):
            url = r.get("url", "")
            if url in seen_urls:
                continue
            seen_urls.add(url)
            hits.append(
                WebHit(
                    title=r.get("title", "(no title)"),
                    url=url,
                    snippet=r.get("content", ""),
                    published=r.get("published_date"),
                    score=r.get("score"),
                )
            )
        return hits
