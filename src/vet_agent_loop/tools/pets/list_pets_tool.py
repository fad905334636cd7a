from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args
from vet_agent_loop.tools.pets.pet_directory import PetDirectory


class ListPetsArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ListPetsTool:
    def __init__(self, directory: PetDirectory) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "list_pets"

    @property
    def description(self) -> str:
        return "List all pets owned by a user when they ask about their pets."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "additionalProperties": False}

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=5.0, retries=2, retry_delay=1.0)

    def validate(self, tool_input: Any) -> ListPetsArgs:
        return parse_args(self.name, ListPetsArgs, tool_input)

    async def execute(self, args: ListPetsArgs, context: ToolContext) -> ToolResult:
        pets = await self._directory.list_pets(context.identity)
        if pets is None:
            return ToolResult.failure("Usuario no registrado. Pide su nombre y usa register_user.")
        logger.info(f"[{context.request_id}] Listed {len(pets)} pets for user {context.identity}")
        return ToolResult.success([p.to_dict() for p in pets])
