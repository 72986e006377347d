"""In-process cache of loaded characters, keyed by content hash."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from personaflow.characters.models import Character

logger = logging.getLogger(__name__)


class CharacterRegistry:
    """Append-only cache over the durable character store.

    Entries are never evicted or replaced. Adding a hash that is already
    present keeps the first instance, so every reader of a hash shares a
    single ``Character`` object.
    """

    def __init__(self) -> None:
        self._characters: dict[str, Character] = {}

    def __contains__(self, character_hash: object) -> bool:
        return character_hash in self._characters

    def __len__(self) -> int:
        return len(self._characters)

    def get(self, character_hash: str) -> Character | None:
        """Look up a character by hash."""
        return self._characters.get(character_hash)

    def add(self, character: Character) -> Character:
        """Insert *character* unless its hash is cached. Returns the cached instance."""
        cached = self._characters.setdefault(character.hash, character)
        if cached is character:
            logger.debug("Cached character %s (%s)", character.name, character.hash[:12])
        return cached

    def clear(self) -> None:
        self._characters.clear()
