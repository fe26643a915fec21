"""Session and conversation-context engine for the support widget.

Sessions and their append-only message logs live in the chat database; the
orchestrator coordinates visitor, bot and admin writes against them and
builds the context window forwarded to the completion backend.
"""
