from dualmode.domain.tool.tool_registry import ToolDefinition, ToolRegistry
from . import end_voice_session, ignore_user, start_voice_session

HANDLER_MODULES = (start_voice_session, end_voice_session, ignore_user)


def build_default_registry() -> ToolRegistry:
    """Registry with the session-control tools"""

    registry = ToolRegistry()
    for module in HANDLER_MODULES:
        registry.register_tool(ToolDefinition(
            name=module.NAME,
            description=module.DESCRIPTION,
            handler=module.execute,
            parameters=module.PARAMETERS,
            allowed_modes=module.ALLOWED_MODES
        ))
    return registry


__all__ = ["build_default_registry", "HANDLER_MODULES"]
