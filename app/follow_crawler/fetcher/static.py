"""
In-memory page fetcher for dry runs and tests.

Serves profiles and follow lists from a mapping, optionally loaded from a
YAML or JSON graph file of the form:

    people:
      alice:
        display_name: Alice
        verified: true
        plan_tier: Artist
        content_count: 12
        follows: [bob, carol]
      bob:
        display_name: Bob
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from ...schema.people import ProfileAttributes
from ..core.exceptions import FetchError, ProfileParseError
from ..core.types import IdentityKey

logger = logging.getLogger(__name__)


class StaticGraphFetcher:
    """Page fetcher backed by a fixed graph"""

    def __init__(
        self,
        profiles: Mapping[IdentityKey, ProfileAttributes],
        follows: Optional[Mapping[IdentityKey, Iterable[IdentityKey]]] = None,
        failing: Iterable[IdentityKey] = (),
    ):
        """
        Args:
            profiles: Profile attributes by handle
            follows: Followed handles by handle (missing means follows nobody)
            failing: Handles whose fetches always fail
        """
        self.profiles: Dict[IdentityKey, ProfileAttributes] = dict(profiles)
        self.follows: Dict[IdentityKey, List[IdentityKey]] = {k: list(v) for k, v in (follows or {}).items()}
        self.failing = set(failing)

        self._lock = threading.Lock()
        self.profile_calls: List[IdentityKey] = []
        self.edge_calls: List[IdentityKey] = []

    def fetch_profile(self, key: IdentityKey) -> ProfileAttributes:
        with self._lock:
            self.profile_calls.append(key)

        if key in self.failing:
            raise FetchError(key, "configured to fail")
        try:
            return self.profiles[key]
        except KeyError:
            raise FetchError(key, "no such profile", status_code=404)

    def fetch_edges(self, key: IdentityKey) -> List[IdentityKey]:
        with self._lock:
            self.edge_calls.append(key)

        if key in self.failing:
            raise FetchError(key, "configured to fail")
        if key not in self.profiles:
            raise FetchError(key, "no such profile", status_code=404)
        return list(self.follows.get(key, []))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StaticGraphFetcher":
        """
        Build a fetcher from a parsed graph document.

        Raises:
            ProfileParseError: If a person entry is malformed
        """
        people = data.get("people") or {}
        profiles: Dict[IdentityKey, ProfileAttributes] = {}
        follows: Dict[IdentityKey, List[IdentityKey]] = {}

        for handle, entry in people.items():
            entry = dict(entry or {})
            follows[handle] = [str(followee) for followee in entry.pop("follows", None) or []]
            entry.setdefault("display_name", handle)
            try:
                profiles[handle] = ProfileAttributes.model_validate(entry)
            except ValidationError as e:
                raise ProfileParseError(handle, f"invalid graph file entry ({e.error_count()} errors)", e)

        return cls(profiles, follows, failing=data.get("failing") or ())

    @classmethod
    def from_file(cls, path: Path) -> "StaticGraphFetcher":
        """Load a graph from a YAML (or JSON) file"""
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}

        fetcher = cls.from_mapping(data)
        logger.info(f"Loaded static graph with {len(fetcher.profiles)} people from {path}")
        return fetcher
