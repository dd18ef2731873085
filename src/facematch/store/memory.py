"""Process-local embedding store, used for tests and ephemeral deployments."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import TYPE_CHECKING

from facematch.store.base import IdentityRecord, identity_key

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class InMemoryEmbeddingStore:
    """Thread-safe dict-backed store with monotonically increasing ids."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._by_id: dict[int, IdentityRecord] = {}
        self._id_by_key: dict[str, int] = {}

    def save(self, name: str, embedding: Sequence[float]) -> IdentityRecord:
        key = identity_key(name)
        with self._lock:
            identity_id = self._id_by_key.get(key)
            if identity_id is None:
                identity_id = next(self._ids)
                self._id_by_key[key] = identity_id
            record = IdentityRecord(id=identity_id, key=key, name=name, embedding=[float(v) for v in embedding])
            self._by_id[identity_id] = record
        return record

    def fetch_by_id(self, identity_id: int) -> IdentityRecord | None:
        with self._lock:
            return self._by_id.get(identity_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
