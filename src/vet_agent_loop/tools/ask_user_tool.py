from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args


class AskUserArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str = Field(min_length=1)


class AskUserTool:
    @property
    def name(self) -> str:
        return "ask_user"

    @property
    def description(self) -> str:
        return "Ask the user for missing information or clarification."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Clarification question in Spanish"},
            },
            "required": ["message"],
            "additionalProperties": False,
        }

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=1.0, retries=0, retry_delay=0)

    def validate(self, tool_input: Any) -> AskUserArgs:
        return parse_args(self.name, AskUserArgs, tool_input)

    async def execute(self, args: AskUserArgs, context: ToolContext) -> ToolResult:
        logger.info(f"[{context.request_id}] Asking user: {args.message}")
        return ToolResult.success({"message": args.message})
