"""Link filtering and crawl-scope matching."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Union
from urllib.parse import urljoin, urlsplit

from .normalize import WEB_SCHEMES, host_parts

# Paths ending in these never lead to HTML pages worth fetching
SKIP_EXTENSIONS = (
    ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
    ".css", ".js", ".json", ".zip", ".gz", ".tar", ".xml", ".rss",
    ".woff", ".woff2", ".ttf", ".eot", ".mp3", ".mp4", ".mov", ".avi",
)


class UrlMatchStrategy(str, Enum):
    """How a candidate URL is compared with the page it was found on."""

    ALL = "all"
    NONE = "none"
    SAME_HOSTNAME = "same-hostname"
    SAME_DOMAIN = "same-domain"
    SAME_DIRECTORY = "same-directory"


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def matches_strategy(
    candidate: str,
    context: Optional[str],
    strategy: UrlMatchStrategy = UrlMatchStrategy.SAME_DOMAIN,
) -> bool:
    """Return True if ``candidate`` is in scope relative to ``context``.

    Every strategy other than ALL and NONE needs a context URL; without one
    the candidate never matches.
    """
    if strategy is UrlMatchStrategy.ALL:
        return True
    if strategy is UrlMatchStrategy.NONE or not context:
        return False

    candidate_host = _hostname(candidate)
    context_host = _hostname(context)
    if not candidate_host or not context_host:
        return False

    if strategy is UrlMatchStrategy.SAME_HOSTNAME:
        return candidate_host == context_host
    if strategy is UrlMatchStrategy.SAME_DOMAIN:
        return host_parts(candidate_host)[1] == host_parts(context_host)[1]

    # SAME_DIRECTORY
    if candidate_host != context_host:
        return False
    directory = urlsplit(context).path.rpartition("/")[0] + "/"
    return (urlsplit(candidate).path or "/").startswith(directory)


def is_skippable(url: str) -> bool:
    """True for non-web schemes and static asset paths."""
    try:
        parsed = urlsplit(url)
    except ValueError:
        return True
    if parsed.scheme.lower() not in WEB_SCHEMES:
        return True
    return parsed.path.lower().endswith(SKIP_EXTENSIONS)


def filter_links(
    links: Iterable[Union[str, dict]],
    base_url: str,
    strategy: UrlMatchStrategy = UrlMatchStrategy.ALL,
) -> list[str]:
    """Resolve, filter and deduplicate links found on ``base_url``.

    Args:
        links: hrefs, or link dicts with an "href" key (crawl4ai's shape).
        base_url: the page the links were found on.
        strategy: scope rule applied relative to ``base_url``.

    Returns:
        Absolute URLs, sorted for determinism.
    """
    kept: set[str] = set()
    for link in links:
        href = link.get("href", "") if isinstance(link, dict) else link
        href = (href or "").strip()
        if not href or href.startswith("#"):
            continue

        try:
            absolute = urljoin(base_url, href)
        except ValueError:
            continue

        if is_skippable(absolute):
            continue
        if not matches_strategy(absolute, base_url, strategy):
            continue
        kept.add(absolute)

    return sorted(kept)
