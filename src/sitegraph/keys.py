"""Deterministic identity keys for URLs and hierarchy edges.

Keys are UUIDv5 hashes of a canonical JSON seed under a fixed namespace, so the
same URL always maps to the same key, on any machine and in any session. The
namespace and seed layout are versioned: changing either one breaks idempotent
upserts against previously stored records, so bump ``KEY_VERSION`` if you must.
"""

from __future__ import annotations

import json
import uuid
from typing import Iterable

KEY_VERSION = 1
KEY_NAMESPACE = uuid.UUID("9fc3e7e5-59d7-4d55-afa0-98a978f49bab")

UNPARSABLE_PREFIX = "unparsable-"
ROOT_PREFIX = "root-"


def _seed_to_key(seed: dict) -> str:
    # ASCII escapes keep lone surrogates from undecodable input hashable.
    payload = json.dumps(seed, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return str(uuid.uuid5(KEY_NAMESPACE, payload))


def url_key(href: str) -> str:
    """Key for a normalized URL."""
    return _seed_to_key({"url": href})


def unparsable_key(raw: str) -> str:
    """Key for a string that could not be parsed; never equal to a ``url_key``."""
    return UNPARSABLE_PREFIX + _seed_to_key({"raw": raw})


def edge_key(parent_key: str, child_key: str, context: str) -> str:
    """Key for a child -> parent relationship in a given context."""
    return _seed_to_key({"from": child_key, "label": context, "to": parent_key})


def root_key(name: str, child_keys: Iterable[str]) -> str:
    """Key for a synthesized super-root over a set of existing roots."""
    return ROOT_PREFIX + _seed_to_key({"root": name, "children": sorted(child_keys)})


def is_unparsable_key(key: str) -> bool:
    return key.startswith(UNPARSABLE_PREFIX)
