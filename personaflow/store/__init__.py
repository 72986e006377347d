"""Persistence adapters for characters, conversations, and messages."""
