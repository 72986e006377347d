"""Content addressing for character definitions."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from personaflow.characters.models import CharacterOptions

# Serialization order is part of the identity; changing it re-keys every
# stored character.
_IDENTITY_FIELDS = ("bio", "lore", "knowledge", "messageExamples", "functions", "name")


def character_hash(options: CharacterOptions) -> str:
    """Return the SHA-256 hex digest identifying *options*."""
    record = options.to_record()
    payload = json.dumps(
        {key: record[key] for key in _IDENTITY_FIELDS},
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
