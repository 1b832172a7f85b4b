"""Exception types shared by tools, providers and the orchestration loop."""


class ToolError(RuntimeError):
    """Raised by a tool when it cannot produce a result."""


class ToolRegistrationError(ValueError):
    """Raised when a tool cannot be added to the registry."""


class CompletionError(RuntimeError):
    """Raised when a completion provider cannot return a usable response."""


class OperationCancelledError(RuntimeError):
    """Raised when the caller's cancellation token fires."""
