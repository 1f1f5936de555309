"""
Call contracts between the traversal engine and its collaborators.

Methods may be plain blocking functions or coroutine functions; the engine
runs the former on its worker thread pool and awaits the latter.
"""

from typing import Awaitable, Protocol, Sequence, Union, runtime_checkable

from ...schema.people import ProfileAttributes
from .types import IdentityKey


@runtime_checkable
class PageFetcher(Protocol):
    """Loads profile attributes and follow lists from the platform"""

    def fetch_profile(self, key: IdentityKey) -> Union[ProfileAttributes, Awaitable[ProfileAttributes]]: ...

    def fetch_edges(self, key: IdentityKey) -> Union[Sequence[IdentityKey], Awaitable[Sequence[IdentityKey]]]: ...


@runtime_checkable
class PersistenceSink(Protocol):
    """Durably records discovered identities and their follow edges"""

    def persist_identity(self, key: IdentityKey, attrs: ProfileAttributes) -> Union[int, Awaitable[int]]:
        """Return the internal id of the identity, or a negative value on a recoverable failure."""
        ...

    def persist_edges(
        self, source_internal_id: int, targets: Sequence[IdentityKey]
    ) -> Union[None, Awaitable[None]]: ...
