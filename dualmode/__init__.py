"""Conversation memory and tool/intent orchestration for a text and voice agent."""

__version__ = "0.1.0"
