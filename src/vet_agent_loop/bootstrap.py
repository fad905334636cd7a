from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from vet_agent_loop.agent_config import AgentConfig
from vet_agent_loop.agent_loop import AgentLoop
from vet_agent_loop.app_config import AppConfig, RuntimeEnv
from vet_agent_loop.logging_config import setup_logging
from vet_agent_loop.provider import LLMProvider, create_provider
from vet_agent_loop.session import SessionStore
from vet_agent_loop.system_prompt import build_system_prompt
from vet_agent_loop.tool_registry import ToolRegistry, build_registry
from vet_agent_loop.tool_runner import ToolRunner
from vet_agent_loop.tools.pets.pet_directory import PetDirectory


@dataclass
class AppRuntime:
    agent: AgentLoop
    store: SessionStore
    registry: ToolRegistry
    runner: ToolRunner
    log_descriptions: list[str]

    async def close(self) -> None:
        await self.store.disconnect()


async def bootstrap_runtime(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    pet_directory: PetDirectory | None = None,
    provider: LLMProvider | None = None,
) -> AppRuntime:
    """Build the shared collaborators once and inject them into the agent loop."""
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    db_path = app.session_db_path
    if db_path != ":memory:" and not Path(db_path).is_absolute():
        db_path = str(Path.cwd() / db_path)
    store = SessionStore(
        db_path,
        max_turns=app.max_turns,
        session_ttl_seconds=app.session_ttl_seconds,
        seen_ttl_seconds=app.seen_ttl_seconds,
    )
    await store.connect()
    await store.purge_expired()

    registry = build_registry(
        pet_directory=pet_directory,
        tavily_api_key=env.tavily_api_key,
        google_places_api_key=env.google_places_api_key,
    )
    runner = ToolRunner(cache_capacity=app.tool_cache_capacity)

    agent = AgentLoop(
        store=store,
        registry=registry,
        runner=runner,
        provider=provider or create_provider(app.provider_name, env.provider_api_key),
        config=AgentConfig(
            model=app.model,
            max_tokens=app.max_tokens,
            temperature=app.temperature,
            system_prompt=build_system_prompt(registry.names()),
            max_rounds=app.max_rounds,
            serialize_per_identity=app.serialize_per_identity,
        ),
    )

    return AppRuntime(
        agent=agent,
        store=store,
        registry=registry,
        runner=runner,
        log_descriptions=log_descriptions,
    )
