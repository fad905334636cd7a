from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args
from vet_agent_loop.tools.input_normalizer import normalize_name
from vet_agent_loop.tools.pets.pet_directory import PetDirectory


class RegisterUserArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)


class RegisterUserTool:
    def __init__(self, directory: PetDirectory) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "register_user"

    @property
    def description(self) -> str:
        return "Register or update a user when they provide their name."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "User full name"},
            },
            "required": ["name"],
            "additionalProperties": False,
        }

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=5.0, retries=2, retry_delay=1.0)

    def validate(self, tool_input: Any) -> RegisterUserArgs:
        return parse_args(self.name, RegisterUserArgs, tool_input)

    async def execute(self, args: RegisterUserArgs, context: ToolContext) -> ToolResult:
        owner = await self._directory.upsert_owner(normalize_name(args.name), context.identity)
        logger.info(f"[{context.request_id}] User registered/updated: {owner.id}")
        return ToolResult.success(owner.to_dict())
