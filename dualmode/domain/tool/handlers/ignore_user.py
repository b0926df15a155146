"""
ignore_user: moderation timeout for abusive users.

Blocks further input until ``timeout_until`` and, in voice mode, closes the
voice channel once the farewell has been spoken. Calling it again while a
timeout is running overwrites the clock instead of failing.
"""

import structlog

from dualmode.domain.models.session_state import SessionMode
from ..contract import Intent, IntentTiming, IntentType, ToolContext, ToolResult
from ..errors import SessionInactiveError

logger = structlog.get_logger(__name__)

NAME = "ignore_user"
DESCRIPTION = "Stop responding to a disrespectful user for a number of seconds."
PARAMETERS = {
    "type": "object",
    "properties": {
        "duration_seconds": {"type": "number", "exclusiveMinimum": 0},
        "farewell_message": {"type": "string", "minLength": 1}
    },
    "required": ["duration_seconds", "farewell_message"],
    "additionalProperties": False
}
ALLOWED_MODES = frozenset({SessionMode.TEXT, SessionMode.VOICE})


async def execute(context: ToolContext) -> ToolResult:
    if not context.state.is_active:
        raise SessionInactiveError("Cannot ignore user: session is not active")

    duration_seconds = context.args["duration_seconds"]
    farewell_message = context.args["farewell_message"]
    timeout_until = context.now_ms + int(duration_seconds * 1000)
    in_voice = context.capabilities.voice

    logger.info(
        "Blocking client",
        client_id=context.client_id,
        duration_seconds=duration_seconds,
        timeout_until=timeout_until,
        already_timed_out=context.state.is_timed_out(context.now_ms)
    )

    intents = [
        Intent(
            type=IntentType.SET_TIMEOUT,
            timing=IntentTiming.IMMEDIATE,
            payload={
                "timeout_until": timeout_until,
                "duration_seconds": duration_seconds,
                "message": farewell_message
            }
        ),
        Intent(type=IntentType.SUPPRESS_TRANSCRIPT, timing=IntentTiming.IMMEDIATE, payload={"value": True})
    ]
    if in_voice:
        intents.append(Intent(
            type=IntentType.END_VOICE_SESSION,
            timing=IntentTiming.AFTER_CURRENT_TURN,
            payload={"reason": "moderation", "final_message": farewell_message}
        ))

    return ToolResult.success(
        data={
            "timeout_until": timeout_until,
            "duration_seconds": duration_seconds,
            # Voice farewells are spoken by the agent; text farewells go out with the timeout notice
            "farewell_channel": "voice" if in_voice else "text",
            "farewell_message": farewell_message
        },
        intents=intents
    )
