from dataclasses import asdict, dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class WebHit:
    title: str
    url: str
    snippet: str
    published: str | None = None
    score: float | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@runtime_checkable
class SearchProvider(Protocol):
    @property
    def provider_name(self) -> str: ...

    async def search(
        self,
        query: str,
        count: int,
        *,
        recency_days: int | None = None,
        site: str | None = None,
    ) -> list[WebHit]:
        """Return search results. Raises on errors (caller handles formatting)."""
        ...
