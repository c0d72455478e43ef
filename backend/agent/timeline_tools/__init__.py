from .tools import DEFAULT_TOOL_ACTOR, TIMELINE_TOOLS, execute_tool
from .types import ErrorSeverity, ToolError

__all__ = [
    "DEFAULT_TOOL_ACTOR",
    "ErrorSeverity",
    "TIMELINE_TOOLS",
    "ToolError",
    "execute_tool",
]
