"""
Local JSON-file persistence sink.

File-based storage of people and follow edges for local development that
provides the same interface as the DynamoDB sink.
"""

import json
import logging
import shutil
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ...schema.people import Follow, Person, ProfileAttributes
from ..core.exceptions import PersistenceError
from ..core.types import IdentityKey

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_EVERY = 500


class LocalPersistenceSink:
    """
    Local file-based persistence sink.

    People are upserted by handle: re-recording a known handle refreshes its
    attributes and returns the id it already has. Ids start at 1 and grow
    monotonically. Follow edges are stored as (follower id, followee handle)
    pairs with duplicates ignored. The store is reloaded when the sink is
    created and rewritten once every `flush_every` changes, on `flush()` and
    on `close()`.
    """

    def __init__(self, store_file: Path, flush_every: int = DEFAULT_FLUSH_EVERY):
        if flush_every < 1:
            raise ValueError(f"flush_every must be >= 1, got {flush_every}")

        self.store_file = Path(store_file)
        self.flush_every = flush_every
        self.backup_file = self.store_file.with_suffix(self.store_file.suffix + ".bak")

        # Ensure store directory exists
        self.store_file.parent.mkdir(parents=True, exist_ok=True)

        # Thread lock for file operations
        self._lock = threading.Lock()

        self._people: Dict[IdentityKey, Person] = {}
        self._handles_by_id: Dict[int, IdentityKey] = {}
        self._follows: List[Follow] = []
        self._follow_keys: Set[Tuple[int, str]] = set()
        self._next_id = 1
        self._pending_changes = 0

        self.stats = {
            "people_created": 0,
            "people_updated": 0,
            "follows_created": 0,
            "writes": 0,
            "write_errors": 0,
        }

        self._load()
        logger.info(f"Initialized local persistence sink at {self.store_file} ({len(self._people)} people)")

    def _load(self) -> None:
        """Read an existing store file"""
        if not self.store_file.exists():
            return

        try:
            with open(self.store_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt store file {self.store_file}: {e}", e) from e

        for entry in data.get("people", []):
            person = Person.model_validate(entry)
            self._people[person.handle] = person
            self._handles_by_id[person.id] = person.handle
            self._next_id = max(self._next_id, person.id + 1)

        for entry in data.get("follows", []):
            follow = Follow.model_validate(entry)
            self._add_follow(follow)

    def _write(self) -> None:
        """Write the whole store to file (caller holds the lock)"""
        try:
            # Create backup before writing
            if self.store_file.exists():
                shutil.copy2(self.store_file, self.backup_file)

            with open(self.store_file, "w", encoding="utf-8") as f:
                json.dump(
                    {
                        "people": [person.model_dump(mode="json") for person in self._people.values()],
                        "follows": [follow.model_dump(mode="json") for follow in self._follows],
                    },
                    f,
                    indent=2,
                )
        except OSError as e:
            self.stats["write_errors"] += 1
            raise PersistenceError(f"Error writing store file {self.store_file}: {e}", e) from e

        self._pending_changes = 0
        self.stats["writes"] += 1

    def _record_changes(self, count: int) -> None:
        """Count unwritten changes and write once enough have accumulated (caller holds the lock)"""
        self._pending_changes += count
        if self._pending_changes >= self.flush_every:
            self._write()

    def _add_follow(self, follow: Follow) -> bool:
        key = (follow.follower_id, follow.followee_handle)
        if key in self._follow_keys:
            return False
        self._follow_keys.add(key)
        self._follows.append(follow)
        return True

    def persist_identity(self, key: IdentityKey, attrs: ProfileAttributes) -> int:
        """
        Record a person and return its id.

        Raises:
            PersistenceError: If the store cannot be written
        """
        with self._lock:
            existing = self._people.get(key)
            if existing is not None:
                person = Person.from_profile(existing.id, key, attrs)
                self.stats["people_updated"] += 1
            else:
                person = Person.from_profile(self._next_id, key, attrs)
                self._next_id += 1
                self.stats["people_created"] += 1

            self._people[key] = person
            self._handles_by_id[person.id] = key
            self._record_changes(1)

        logger.debug(f"Persisted {key} as person {person.id}")
        return person.id

    def persist_edges(self, source_internal_id: int, targets: Sequence[IdentityKey]) -> None:
        """
        Record that person `source_internal_id` follows each handle in `targets`.

        Raises:
            PersistenceError: If the follower is unknown or the store cannot be written
        """
        with self._lock:
            if source_internal_id not in self._handles_by_id:
                raise PersistenceError(f"Unknown follower id {source_internal_id}")

            created = 0
            for target in targets:
                if self._add_follow(Follow(follower_id=source_internal_id, followee_handle=target)):
                    created += 1

            self.stats["follows_created"] += created
            if created:
                self._record_changes(created)

        logger.debug(f"Persisted {created} follows for person {source_internal_id}")

    def flush(self) -> None:
        """Write any unwritten changes to the store file"""
        with self._lock:
            if self._pending_changes:
                self._write()

    def close(self) -> None:
        self.flush()
        logger.info(f"Closed local persistence sink at {self.store_file}")

    def get_person(self, handle: IdentityKey) -> Optional[Person]:
        with self._lock:
            return self._people.get(handle)

    def people(self) -> List[Person]:
        with self._lock:
            return list(self._people.values())

    def follows_of(self, follower_id: int) -> List[IdentityKey]:
        """Followed handles of a person, in recorded order"""
        with self._lock:
            return [follow.followee_handle for follow in self._follows if follow.follower_id == follower_id]

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                **self.stats,
                "people": len(self._people),
                "follows": len(self._follows),
                "pending_changes": self._pending_changes,
                "store_file": str(self.store_file),
            }
