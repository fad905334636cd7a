from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args
from vet_agent_loop.tools.pets.pet_directory import PetDirectory


class GetUserInfoArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GetUserInfoTool:
    def __init__(self, directory: PetDirectory) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "get_user_info"

    @property
    def description(self) -> str:
        return (
            "Get user information including their name and basic details "
            "when they ask questions about themselves."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": [], "additionalProperties": False}

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=5.0, retries=2, retry_delay=1.0)

    def validate(self, tool_input: Any) -> GetUserInfoArgs:
        return parse_args(self.name, GetUserInfoArgs, tool_input)

    async def execute(self, args: GetUserInfoArgs, context: ToolContext) -> ToolResult:
        owner = await self._directory.get_owner(context.identity)
        if owner is None:
            return ToolResult.failure("Usuario no encontrado. ¿Te gustaría registrarte primero?")
        pets = await self._directory.list_pets(context.identity) or []
        logger.info(f"[{context.request_id}] User info retrieved for {owner.id} ({len(pets)} pets)")
        return ToolResult.success({"user": owner.to_dict(), "pets": [p.to_dict() for p in pets]})
