"""Embedding store contract and identity key derivation."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

_WHITESPACE = re.compile(r"\s+")

MAX_KEY_LENGTH = 255


@dataclass(frozen=True)
class IdentityRecord:
    """A persisted identity with its normalized embedding."""

    id: int
    key: str
    name: str
    embedding: list[float] = field(repr=False)


def identity_key(name: str) -> str:
    """Derive the stable upsert key for a display name.

    ``"Ada  Lovelace "`` and ``"ada lovelace"`` map to the same key, so
    re-enrolling either replaces the same record.
    """
    key = _WHITESPACE.sub("_", name.strip().lower())
    if not key:
        raise ValueError("Identity name must not be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise ValueError(f"Identity name must be at most {MAX_KEY_LENGTH} characters")
    return key


class EmbeddingStore(Protocol):
    """What the core needs from persistence."""

    def save(self, name: str, embedding: Sequence[float]) -> IdentityRecord:
        """Create or replace the identity keyed by ``identity_key(name)``."""
        ...

    def fetch_by_id(self, identity_id: int) -> IdentityRecord | None:
        """Return the identity, or None if it does not exist."""
        ...
