from typing import Dict, List, Any, Optional, Callable, Awaitable, FrozenSet
import time
from dataclasses import dataclass, field
import structlog

from dualmode.domain.models.session_state import SessionMode
from .contract import ToolContext, ToolResult, TOOL_RESULT_SCHEMA_VERSION, validate_tool_result
from .errors import ErrorKind, ToolError
from .tool_validator import ToolParameterValidator

logger = structlog.get_logger(__name__)

ToolHandler = Callable[[ToolContext], Awaitable[ToolResult]]


@dataclass
class ToolDefinition:
    name: str
    description: str
    handler: ToolHandler
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object"})
    allowed_modes: FrozenSet[SessionMode] = frozenset(SessionMode)
    version: str = "1.0.0"


class ToolRegistry:
    """Registry for managing available tools"""

    def __init__(self):
        self.tools: Dict[str, ToolDefinition] = {}

    def register_tool(self, tool: ToolDefinition):
        """Register a new tool"""

        if tool.name in self.tools:
            raise ValueError(f"Tool {tool.name} already registered")

        self.tools[tool.name] = tool

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        """Get a registered tool"""

        return self.tools.get(name)

    def get_available_tools(self, mode: Optional[SessionMode] = None) -> List[Dict[str, Any]]:
        """Describe registered tools, optionally only those admissible in ``mode``"""

        return [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
                "allowed_modes": sorted(m.value for m in tool.allowed_modes)
            }
            for tool in self.tools.values()
            if mode is None or mode in tool.allowed_modes
        ]

    async def execute_tool(self, name: str, context: ToolContext) -> ToolResult:
        """Validate arguments, run the handler and normalize the outcome"""

        started = time.monotonic()
        tool = self.tools.get(name)

        if tool is None:
            result = ToolResult.failure(ErrorKind.NOT_FOUND, f"Tool {name} not found")
            return self._stamp(result, name, None, started)

        violations = ToolParameterValidator.validate_tool_call(tool.parameters, context.args)
        if violations:
            result = ToolResult.failure(
                ErrorKind.VALIDATION,
                f"Invalid parameters: {', '.join(violations)}",
                details={"violations": violations}
            )
            return self._stamp(result, name, tool, started)

        try:
            result = validate_tool_result(await tool.handler(context))
        except ToolError as e:
            result = ToolResult.failure(e.kind, e.message, retryable=e.retryable, details=e.details or None)
        except Exception as e:
            logger.exception("Unexpected error in tool handler", tool_name=name, client_id=context.client_id)
            result = ToolResult.failure(ErrorKind.INTERNAL, f"Unexpected error: {e}")

        return self._stamp(result, name, tool, started)

    @staticmethod
    def _stamp(result: ToolResult, name: str, tool: Optional[ToolDefinition], started: float) -> ToolResult:
        result.meta.update({
            "tool_id": name,
            "tool_version": tool.version if tool else None,
            "duration_ms": round((time.monotonic() - started) * 1000, 3),
            "schema_version": TOOL_RESULT_SCHEMA_VERSION
        })
        return result
