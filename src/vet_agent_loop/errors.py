class AgentLoopError(Exception):
    """Base class for failures raised inside the orchestration engine."""


class ToolValidationError(AgentLoopError):
    """Tool input rejected by the handler's validator. Never retried."""

    def __init__(self, tool_name: str, detail: str):
        super().__init__(f"Invalid input for tool {tool_name}: {detail}")
        self.tool_name = tool_name
        self.detail = detail


class TransientExternalError(AgentLoopError):
    """Timeout or network failure talking to the store, the model or a tool."""


class ProtocolInconsistencyError(AgentLoopError):
    """Message history that the model provider would reject."""


class StoreNotConnectedError(AgentLoopError):
    def __init__(self) -> None:
        super().__init__("SessionStore is not connected; call connect() first")
