"""URL normalization rules.

A normalizer is a plain callable that takes a ``SplitResult`` and returns a
rewritten ``SplitResult``. ``build_normalizer`` composes the individual rules
below according to a ``NormalizerOptions`` record.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from functools import lru_cache
from typing import Callable, Optional
from urllib.parse import SplitResult, unquote_plus

import tldextract
from pydantic import BaseModel, Field

Normalizer = Callable[[SplitResult], SplitResult]

WEB_SCHEMES = ("http", "https")

DEFAULT_INDEX_PATTERNS = (
    "index.htm",
    "index.html",
    "index.php",
    "index.aspx",
    "default.htm",
    "default.html",
    "default.php",
    "default.aspx",
)

# Bundled public suffix snapshot only; normalization must never touch the network.
_EXTRACTOR = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())


class NormalizerOptions(BaseModel):
    """Switches for the default normalization pipeline."""

    force_scheme: Optional[str] = Field(
        default="https",
        description="Rewrite http/https URLs to this scheme. None leaves the scheme alone.",
    )
    lowercase_host: bool = Field(default=True)
    discard_subdomain: Optional[str] = Field(
        default="ww*",
        description="Glob for a leading subdomain label to strip (e.g. www, www2).",
    )
    discard_fragment: bool = Field(default=True)
    discard_auth: bool = Field(default=True)
    discard_index: tuple[str, ...] = Field(
        default=DEFAULT_INDEX_PATTERNS,
        description="Globs for default index filenames removed from the end of the path.",
    )
    discard_query: tuple[str, ...] = Field(
        default=(),
        description="Globs for query keys to drop.",
    )
    keep_query: Optional[tuple[str, ...]] = Field(
        default=None,
        description="If set, only query keys matching one of these globs are kept.",
    )
    strip_trailing_slash: bool = Field(default=False)
    sort_query: bool = Field(default=True)


@lru_cache(maxsize=4096)
def host_parts(hostname: str) -> tuple[str, str]:
    """Split a hostname into ``(subdomain, registrable_domain)``.

    IP addresses and single-label hosts (``localhost``) have no public suffix;
    they are returned whole as their own registrable domain.
    """
    host = (hostname or "").strip().rstrip(".").lower()
    if not host:
        return "", ""
    if host.startswith("["):
        return "", host
    extracted = _EXTRACTOR(host)
    if not extracted.suffix or not extracted.domain:
        return "", host
    return extracted.subdomain, f"{extracted.domain}.{extracted.suffix}"


def split_netloc(netloc: str) -> tuple[str, str, str]:
    """Return ``(userinfo, host, port)`` for a netloc; missing parts are empty."""
    userinfo, _, hostport = netloc.rpartition("@")
    if hostport.startswith("["):
        end = hostport.find("]")
        host = hostport[: end + 1]
        port = hostport[end + 2 :] if hostport[end + 1 : end + 2] == ":" else ""
    else:
        host, _, port = hostport.partition(":")
    return userinfo, host, port


def join_netloc(userinfo: str, host: str, port: str) -> str:
    netloc = host
    if port:
        netloc = f"{netloc}:{port}"
    if userinfo:
        netloc = f"{userinfo}@{netloc}"
    return netloc


def force_scheme(url: SplitResult, scheme: str) -> SplitResult:
    if url.scheme.lower() in WEB_SCHEMES:
        return url._replace(scheme=scheme)
    return url


def lowercase_host(url: SplitResult) -> SplitResult:
    userinfo, host, port = split_netloc(url.netloc)
    return url._replace(scheme=url.scheme.lower(), netloc=join_netloc(userinfo, host.lower(), port))


def strip_subdomain(url: SplitResult, pattern: str) -> SplitResult:
    userinfo, host, port = split_netloc(url.netloc)
    subdomain, _ = host_parts(host)
    if not subdomain:
        return url
    first = subdomain.split(".")[0]
    if not fnmatchcase(first.lower(), pattern):
        return url
    stripped = host[len(first) + 1 :]
    return url._replace(netloc=join_netloc(userinfo, stripped, port))


def strip_fragment(url: SplitResult) -> SplitResult:
    return url._replace(fragment="")


def strip_auth(url: SplitResult) -> SplitResult:
    _, host, port = split_netloc(url.netloc)
    return url._replace(netloc=join_netloc("", host, port))


def strip_index(url: SplitResult, patterns: tuple[str, ...]) -> SplitResult:
    head, _, last = url.path.rpartition("/")
    if not last:
        return url
    lowered = last.lower()
    if any(fnmatchcase(lowered, p) for p in patterns):
        return url._replace(path=f"{head}/")
    return url


def _query_parts(query: str) -> list[tuple[str, str]]:
    """Split a query into ``(decoded_key, verbatim_part)`` pairs, dropping empty parts."""
    parts = []
    for part in query.split("&"):
        if part:
            parts.append((unquote_plus(part.partition("=")[0]), part))
    return parts


def filter_query(
    url: SplitResult,
    discard: tuple[str, ...] = (),
    keep: Optional[tuple[str, ...]] = None,
) -> SplitResult:
    if not url.query:
        return url
    parts = _query_parts(url.query)
    if keep is not None:
        parts = [(k, part) for k, part in parts if any(fnmatchcase(k, p) for p in keep)]
    if discard:
        parts = [(k, part) for k, part in parts if not any(fnmatchcase(k, p) for p in discard)]
    return url._replace(query="&".join(part for _, part in parts))


def strip_trailing_slash(url: SplitResult) -> SplitResult:
    if len(url.path) > 1 and url.path.endswith("/"):
        return url._replace(path=url.path.rstrip("/") or "/")
    return url


def sort_query(url: SplitResult) -> SplitResult:
    """Stable sort of query parts by decoded key; values keep their original encoding."""
    if not url.query:
        return url
    parts = sorted(_query_parts(url.query), key=lambda pair: pair[0])
    return url._replace(query="&".join(part for _, part in parts))


def build_normalizer(options: Optional[NormalizerOptions] = None) -> Normalizer:
    """Compose a normalizer from ``options`` (defaults when omitted)."""
    opts = options or NormalizerOptions()

    def normalize(url: SplitResult) -> SplitResult:
        if opts.force_scheme:
            url = force_scheme(url, opts.force_scheme)
        if opts.lowercase_host:
            url = lowercase_host(url)
        if opts.discard_subdomain:
            url = strip_subdomain(url, opts.discard_subdomain)
        if opts.discard_fragment:
            url = strip_fragment(url)
        if opts.discard_auth:
            url = strip_auth(url)
        if opts.discard_index:
            url = strip_index(url, opts.discard_index)
        if opts.discard_query or opts.keep_query is not None:
            url = filter_query(url, opts.discard_query, opts.keep_query)
        if opts.strip_trailing_slash:
            url = strip_trailing_slash(url)
        if opts.sort_query:
            url = sort_query(url)
        if not url.path:
            url = url._replace(path="/")
        return url

    return normalize


def identity_normalizer(url: SplitResult) -> SplitResult:
    return url


DEFAULT_NORMALIZER = build_normalizer()
