# Session state = what the orchestrator needs to decide whether a tool call or
# a user message may proceed, and what happens once the current turn ends.

# Mode (text or voice) and whether the session is still live

# Moderation clock (timeout_until, and whether a past timeout has lapsed)

# Deferred intents waiting for the end of the current output unit

# Per-turn presentation flags (suppress transcript / audio)
