"""URL normalization-aware deduplication pool."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Iterator, Optional, Union

from pydantic import BaseModel, Field

from .identity import make_identity
from .models import UrlIdentity, UrlSource
from .normalize import Normalizer

logger = logging.getLogger(__name__)

PoolInput = Union[str, UrlIdentity]


class PoolOptions(BaseModel):
    keep_unparsable: bool = Field(
        default=False,
        description="Store unparsable strings as entries instead of only recording them",
    )
    guess_scheme: bool = Field(
        default=False,
        description="Prepend https:// to strings that have no scheme",
    )
    base: Optional[str] = Field(default=None, description="Base URL for relative strings")


# "mailto:", "tel:", "javascript:" and the like; "localhost:3000" is a host and port.
_SCHEME_PREFIX = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:(?!\d)")


def guess_scheme(text: str) -> str:
    """Prepend ``https://`` to scheme-less, non-relative strings."""
    stripped = text.strip()
    if not stripped or "://" in stripped or stripped.startswith(("/", ".", "#", "?")):
        return text
    if _SCHEME_PREFIX.match(stripped):
        return text
    return f"https://{stripped}"


class UniqueUrlPool:
    """Set of ``UrlIdentity`` values keyed by identity key.

    The first insertion of a key wins; later inserts of the same key are
    no-ops. Strings that fail to parse are kept in ``unparsable`` for
    diagnostics unless the pool is told to keep them as entries.
    """

    def __init__(
        self,
        urls: Optional[Iterable[PoolInput]] = None,
        options: Optional[PoolOptions] = None,
        normalizer: Optional[Normalizer] = None,
    ) -> None:
        self.options = options or PoolOptions()
        self.normalizer = normalizer
        self.unparsable: set[str] = set()
        self._rejected: dict[str, UrlIdentity] = {}
        self._entries: dict[str, UrlIdentity] = {}
        if urls is not None:
            self.add_many(urls)

    def identify(
        self,
        value: PoolInput,
        depth: int = 0,
        referer: Optional[str] = None,
        source: UrlSource = UrlSource.IMPORT,
    ) -> UrlIdentity:
        """Compute the identity the pool would store for ``value``."""
        if isinstance(value, UrlIdentity):
            return value
        text = guess_scheme(value) if self.options.guess_scheme else value
        identity = make_identity(
            text,
            base=self.options.base,
            normalizer=self.normalizer,
            depth=depth,
            referer=referer,
            source=source,
        )
        if text is not value:
            identity = identity.model_copy(update={"raw": value})
        return identity

    def add(
        self,
        value: PoolInput,
        depth: int = 0,
        referer: Optional[str] = None,
        source: UrlSource = UrlSource.IMPORT,
    ) -> bool:
        """Insert ``value``; return True only if it produced a new entry."""
        identity = self.identify(value, depth=depth, referer=referer, source=source)
        if not identity.parsable and not self.options.keep_unparsable:
            self.unparsable.add(identity.raw)
            self._rejected.setdefault(identity.raw, identity)
            return False
        if identity.key in self._entries:
            return False
        self._entries[identity.key] = identity
        return True

    def add_many(self, values: Iterable[PoolInput]) -> int:
        """Insert every value; return the number of new entries."""
        added = 0
        for value in values:
            if self.add(value):
                added += 1
        logger.debug(f"Pool grew by {added} (size {len(self)}, unparsable {len(self.unparsable)})")
        return added

    def has(self, value: PoolInput) -> bool:
        return self.identify(value).key in self._entries

    def get(self, key: str) -> Optional[UrlIdentity]:
        return self._entries.get(key)

    def delete(self, value: PoolInput) -> bool:
        """Remove the entry ``value`` maps to; return whether one was removed."""
        key = self.identify(value).key
        if key in self._entries:
            del self._entries[key]
            return True
        return False

    def clear(self) -> None:
        self._entries.clear()
        self.unparsable.clear()
        self._rejected.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def values(self) -> Iterator[UrlIdentity]:
        """Entries in insertion order; each call starts a fresh iteration."""
        yield from list(self._entries.values())

    def parsable_values(self) -> Iterator[UrlIdentity]:
        return (identity for identity in self.values() if identity.parsable)

    def unparsable_values(self) -> list[UrlIdentity]:
        """Identities of rejected strings, as first seen."""
        return list(self._rejected.values())

    def __contains__(self, value: object) -> bool:
        if isinstance(value, (str, UrlIdentity)):
            return self.has(value)
        return False

    def __iter__(self) -> Iterator[UrlIdentity]:
        return self.values()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def count(self) -> int:
        return len(self._entries)
