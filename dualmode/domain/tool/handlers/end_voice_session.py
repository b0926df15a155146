"""
end_voice_session: close the voice channel while keeping text chat available.
"""

import structlog

from dualmode.domain.models.session_state import SessionMode
from ..contract import Intent, IntentTiming, IntentType, ToolContext, ToolResult
from ..errors import ModeRestrictedError

logger = structlog.get_logger(__name__)

NAME = "end_voice_session"
DESCRIPTION = "End the live voice session. Text chat remains available."
PARAMETERS = {
    "type": "object",
    "properties": {
        "reason": {"type": "string", "minLength": 1},
        "final_message": {"type": "string"}
    },
    "required": ["reason"],
    "additionalProperties": False
}
ALLOWED_MODES = frozenset({SessionMode.VOICE})


async def execute(context: ToolContext) -> ToolResult:
    if not context.capabilities.voice:
        raise ModeRestrictedError("end_voice_session only available in voice mode")

    reason = context.args["reason"]
    final_message = context.args.get("final_message") or None

    logger.info("Ending voice session", client_id=context.client_id, reason=reason)

    # A farewell has to finish playing before the channel closes
    timing = IntentTiming.AFTER_CURRENT_TURN if final_message else IntentTiming.IMMEDIATE

    return ToolResult.success(
        data={
            "reason": reason,
            "final_message": final_message,
            "final_message_delivered": final_message is not None,
            "session_ended": True
        },
        intents=[
            Intent(
                type=IntentType.END_VOICE_SESSION,
                timing=timing,
                payload={"reason": reason, "final_message": final_message}
            )
        ]
    )
