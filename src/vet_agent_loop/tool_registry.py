from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from vet_agent_loop.tool import ToolHandler
from vet_agent_loop.tools.ask_user_tool import AskUserTool


class ToolRegistry:
    """Name-keyed map of handlers. Only registered handlers are declared to the model."""

    def __init__(self, tools: Iterable[ToolHandler] = ()):
        self._tools: dict[str, ToolHandler] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolHandler) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name!r}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolHandler | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def declarations(self) -> list[dict]:
        return [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.input_schema,
            }
            for t in self._tools.values()
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolHandler]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


@dataclass(frozen=True)
class ToolGroup:
    name: str
    enabled: Callable[[dict], bool]
    build: Callable[[dict], list[ToolHandler]]


def _always(_: dict) -> bool:
    return True


def _base_tools(ctx: dict) -> list[ToolHandler]:
    return [AskUserTool()]


def _pet_directory_enabled(ctx: dict) -> bool:
    return ctx.get("pet_directory") is not None


def _pet_directory_tools(ctx: dict) -> list[ToolHandler]:
    from vet_agent_loop.tools.pets.get_consultation_tool import GetConsultationTool
    from vet_agent_loop.tools.pets.get_user_info_tool import GetUserInfoTool
    from vet_agent_loop.tools.pets.list_consultations_tool import ListConsultationsTool
    from vet_agent_loop.tools.pets.list_pets_tool import ListPetsTool
    from vet_agent_loop.tools.pets.register_pet_tool import RegisterPetTool
    from vet_agent_loop.tools.pets.register_user_tool import RegisterUserTool

    directory = ctx["pet_directory"]
    return [
        RegisterUserTool(directory),
        GetUserInfoTool(directory),
        ListPetsTool(directory),
        RegisterPetTool(directory),
        ListConsultationsTool(directory),
        GetConsultationTool(directory),
    ]


def _web_search_enabled(ctx: dict) -> bool:
    return bool(ctx.get("tavily_api_key"))


def _web_search_tools(ctx: dict) -> list[ToolHandler]:
    from vet_agent_loop.tools.web.tavily_search_provider import TavilySearchProvider
    from vet_agent_loop.tools.web.web_search_tool import WebSearchTool

    return [WebSearchTool(TavilySearchProvider(ctx["tavily_api_key"]))]


def _map_search_enabled(ctx: dict) -> bool:
    return bool(ctx.get("google_places_api_key"))


def _map_search_tools(ctx: dict) -> list[ToolHandler]:
    from vet_agent_loop.tools.maps.map_search_tool import MapSearchTool

    return [MapSearchTool(ctx["google_places_api_key"])]


_GROUPS = [
    ToolGroup(name="base", enabled=_always, build=_base_tools),
    ToolGroup(name="pets", enabled=_pet_directory_enabled, build=_pet_directory_tools),
    ToolGroup(name="web_search", enabled=_web_search_enabled, build=_web_search_tools),
    ToolGroup(name="map_search", enabled=_map_search_enabled, build=_map_search_tools),
]


def build_registry(
    *,
    pet_directory=None,
    tavily_api_key: str | None = None,
    google_places_api_key: str | None = None,
) -> ToolRegistry:
    ctx = {
        "pet_directory": pet_directory,
        "tavily_api_key": tavily_api_key,
        "google_places_api_key": google_places_api_key,
    }

    registry = ToolRegistry()
    for group in _GROUPS:
        if group.enabled(ctx):
            for tool in group.build(ctx):
                registry.register(tool)
        else:
            logger.info(f"Tool group '{group.name}' disabled (dependency not configured)")
    return registry
