"""Exception types raised by personaflow."""


class PersonaflowError(Exception):
    """Base class for all personaflow errors."""


class AdapterNotConfiguredError(PersonaflowError):
    """An operation needed the store before ``Framework.start()`` was called."""

    def __init__(self) -> None:
        super().__init__("Adapter is not initialized.")


class CharacterValidationError(PersonaflowError):
    """Character fields are missing or malformed."""


class CharacterCreationError(PersonaflowError):
    """The store refused to persist a new character."""


class CharacterNotFoundError(PersonaflowError):
    """A character hash is neither cached nor present in the store."""


class ConversationNotFoundError(PersonaflowError):
    """The store has no transcript for a conversation."""


class ModelResponseError(PersonaflowError):
    """The model returned no usable reply."""


class ToolCallParseError(PersonaflowError):
    """A single tool call carried arguments that could not be decoded."""


class UnsupportedProviderError(PersonaflowError):
    """The configured model provider is not one we can talk to."""
