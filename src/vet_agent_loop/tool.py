from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from vet_agent_loop.errors import ToolValidationError

ArgsT = TypeVar("ArgsT", bound=BaseModel)


@dataclass(frozen=True)
class ToolPolicy:
    """Execution policy for a handler. ``None`` fields fall back to the runner defaults."""

    timeout: float | None = None
    retries: int | None = None
    retry_delay: float | None = None

    def merged_with(self, defaults: ToolPolicy) -> ToolPolicy:
        return ToolPolicy(
            timeout=self.timeout if self.timeout is not None else defaults.timeout,
            retries=self.retries if self.retries is not None else defaults.retries,
            retry_delay=self.retry_delay if self.retry_delay is not None else defaults.retry_delay,
        )


DEFAULT_TOOL_POLICY = ToolPolicy(timeout=10.0, retries=2, retry_delay=1.0)


@dataclass(frozen=True)
class ToolContext:
    request_id: str
    identity: str
    inbound_message_id: str | None = None


@dataclass(frozen=True)
class ToolResult:
    ok: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def success(cls, data: Any = None) -> ToolResult:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> ToolResult:
        return cls(ok=False, error=error)

    def to_payload(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "error": self.error}


@runtime_checkable
class ToolHandler(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def input_schema(self) -> dict[str, Any]: ...

    @property
    def policy(self) -> ToolPolicy | None: ...

    def validate(self, tool_input: Any) -> Any: ...

    async def execute(self, args: Any, context: ToolContext) -> ToolResult: ...


def parse_args(tool_name: str, model: type[ArgsT], tool_input: Any) -> ArgsT:
    """Validate raw model-supplied input against a pydantic model."""
    if tool_input is None:
        tool_input = {}
    try:
        return model.model_validate(tool_input)
    except ValidationError as ex:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in ex.errors()
        )
        raise ToolValidationError(tool_name, details) from ex
