"""Tool registry, dispatcher and built-in tool set."""

from .builtin import register_builtin_tools
from .cache import ResultCache
from .dispatcher import ToolCall, ToolDispatcher, ToolResult
from .error_analyzer import ErrorAnalyzer
from .metrics import ToolCallEvent, ToolLogSink, ToolMetrics
from .registry import ToolDescriptor, ToolHandler, ToolRegistry
from .schema import ParamSpec, param
from .services import ToolServices

__all__ = [
    "ErrorAnalyzer",
    "ParamSpec",
    "ResultCache",
    "ToolCall",
    "ToolCallEvent",
    "ToolDescriptor",
    "ToolDispatcher",
    "ToolHandler",
    "ToolLogSink",
    "ToolMetrics",
    "ToolRegistry",
    "ToolResult",
    "ToolServices",
    "param",
    "register_builtin_tools",
]
