"""Exception hierarchy shared by the tool executor, the model client and the agent loop."""


class MultitoolError(Exception):
    """Base class for all errors raised by multitool."""

    @property
    def kind(self) -> str:
        """Short, stable name of the error class (used in tool results and API payloads)."""
        return type(self).__name__


# ---------------------------------------------------------------------------
# Tool-level errors (always recovered into a failure ToolResult)
# ---------------------------------------------------------------------------
class ToolError(MultitoolError):
    """A tool call could not be executed or its handler failed."""


class UnknownTool(ToolError):
    """No tool with the requested name is registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ArgumentParseError(ToolError):
    """The tool call arguments are not a well-formed JSON object."""


class SchemaViolation(ToolError):
    """The parsed arguments do not satisfy the tool's parameter schema."""


class EvaluationFault(ToolError):
    """The handler's own logic raised while running."""


# ---------------------------------------------------------------------------
# Model-level errors (fatal to the current loop invocation)
# ---------------------------------------------------------------------------
class ModelError(MultitoolError):
    """The model backend could not produce a usable response."""


class TransportError(ModelError):
    """Network or HTTP failure (timeouts included)."""


class ProtocolError(ModelError):
    """The backend answered with a malformed payload."""


# ---------------------------------------------------------------------------
# Session / conversation errors
# ---------------------------------------------------------------------------
class SessionBusyError(MultitoolError):
    """An agent loop is already running for this session."""


class SessionNotFound(MultitoolError):
    """No session with the given ID exists."""


class ConversationError(MultitoolError):
    """An append would break the ordering rules between assistant and tool turns."""
