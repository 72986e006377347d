"""Conversation state and context window assembly."""
