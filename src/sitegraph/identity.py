"""Turn raw strings into ``UrlIdentity`` records."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from .keys import unparsable_key, url_key
from .models import UrlIdentity, UrlSource
from .normalize import DEFAULT_NORMALIZER, Normalizer, split_netloc

logger = logging.getLogger(__name__)


def _parse(raw: str, base: Optional[str] = None):
    """Return a ``SplitResult`` for an absolute URL, or None."""
    text = raw.strip()
    if not text:
        return None
    if base:
        try:
            text = urljoin(base, text)
        except ValueError:
            return None
    try:
        parts = urlsplit(text)
        parts.port  # raises ValueError for out-of-range or non-numeric ports
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    _, host, _ = split_netloc(parts.netloc)
    if not host or any(c.isspace() for c in host):
        return None
    return parts


def make_identity(
    raw: str,
    base: Optional[str] = None,
    normalizer: Optional[Normalizer] = None,
    depth: int = 0,
    referer: Optional[str] = None,
    source: UrlSource = UrlSource.IMPORT,
) -> UrlIdentity:
    """Parse, normalize and key ``raw``.

    Never raises for malformed input: an unparsable string produces an
    identity with ``normalized=None`` and a key in the unparsable namespace.
    """
    parts = _parse(raw, base)
    normalized = None
    if parts is not None:
        try:
            normalized = urlunsplit((normalizer or DEFAULT_NORMALIZER)(parts))
        except ValueError as e:
            logger.debug(f"Normalizer rejected {raw!r}: {e}")

    if normalized is None:
        return UrlIdentity(
            raw=raw,
            key=unparsable_key(raw),
            depth=depth,
            referer=referer,
            source=source,
        )

    return UrlIdentity(
        raw=raw,
        normalized=normalized,
        key=url_key(normalized),
        depth=depth,
        referer=referer,
        source=source,
    )

