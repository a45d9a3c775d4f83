"""Custom exceptions for LLoms."""


class LlomsError(Exception):
    """Base exception for LLoms."""

    pass


class ConfigurationError(LlomsError):
    """Configuration-related errors."""

    pass


class StorageError(LlomsError):
    """Conversation log append/read errors."""

    pass


class LLMError(LlomsError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (HTTP status, timeouts, connection failures)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(LlomsError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in the session tool set."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name
