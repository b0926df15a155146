"""
start_voice_session: hand the conversation over from text to voice.

The switch itself is applied after the current text reply has been
delivered; the transport then opens the voice channel and continues with
the pending request, if any.
"""

from typing import Optional
import structlog

from dualmode.config.settings import get_settings
from dualmode.domain.models.session_state import SessionMode
from ..contract import Intent, IntentTiming, IntentType, ToolContext, ToolResult
from ..errors import ModeRestrictedError

logger = structlog.get_logger(__name__)

NAME = "start_voice_session"
DESCRIPTION = "Switch the conversation from text chat to a live voice session."
PARAMETERS = {
    "type": "object",
    "properties": {
        "pending_request": {
            "type": "string",
            "description": "What the user asked for, to continue with once voice is live"
        }
    },
    "additionalProperties": False
}
ALLOWED_MODES = frozenset({SessionMode.TEXT})


def normalize_pending_request(value: Optional[str], min_chars: Optional[int] = None) -> Optional[str]:
    """Pending requests shorter than ``min_chars`` count as absent"""

    if min_chars is None:
        min_chars = get_settings().min_pending_request_chars
    if not value:
        return None
    value = value.strip()
    return value if len(value) >= min_chars else None


async def execute(context: ToolContext) -> ToolResult:
    if context.capabilities.voice:
        raise ModeRestrictedError("start_voice_session only available in text mode")

    pending_request = normalize_pending_request(context.args.get("pending_request"))

    if context.state.voice_pending:
        logger.info("Voice session already pending", client_id=context.client_id)
        return ToolResult.success(data={
            "voice_session_requested": True,
            "already_pending": True,
            "pending_request": context.state.pending_request
        })

    logger.info(
        "Voice session requested",
        client_id=context.client_id,
        has_pending_request=pending_request is not None
    )

    return ToolResult.success(
        data={
            "voice_session_requested": True,
            "already_pending": False,
            "pending_request": pending_request,
            "message": "Voice session will be activated by client"
        },
        intents=[
            Intent(
                type=IntentType.SWITCH_TO_VOICE,
                timing=IntentTiming.AFTER_CURRENT_TURN,
                payload={"pending_request": pending_request}
            )
        ]
    )
