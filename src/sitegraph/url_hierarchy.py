"""Rebuild a parent/child page tree from a flat pool of URLs.

Every URL is broken into *levels*: segment tuples running from the top of its
site down to the URL itself, each one segment longer than the one above. A
URL's direct parent is whichever pool entry owns the level just above it.
When that entry is missing, the configured ``GapStrategy`` decides what
happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union
from urllib.parse import SplitResult, urlunsplit

from pydantic import BaseModel, Field

from .hierarchy import HierarchyNode, HierarchyTree
from .identity import make_identity
from .keys import root_key, url_key
from .models import HierarchyEdge, UrlIdentity, UrlSource
from .normalize import Normalizer, host_parts, identity_normalizer, split_netloc
from .pool import PoolInput, PoolOptions, UniqueUrlPool

logger = logging.getLogger(__name__)

UrlNode = HierarchyNode[UrlIdentity]


class GapStrategy(str, Enum):
    """What to do with a URL whose direct parent is not in the pool."""

    ADOPT = "adopt"
    BRIDGE = "bridge"
    PRUNE = "prune"
    SEPARATE = "separate"


class SubdomainStrategy(str, Enum):
    """Whether sub.example.com hangs under example.com or stands alone."""

    CHILDREN = "children"
    SEPARATE = "separate"


class HierarchyOptions(BaseModel):
    gap_strategy: GapStrategy = Field(
        default=GapStrategy.ADOPT,
        description=(
            "adopt: link to the closest existing ancestor. "
            "bridge: create inferred nodes for each missing level. "
            "prune: discard the URL and everything below it. "
            "separate: leave the URL without a parent."
        ),
    )
    subdomains: SubdomainStrategy = Field(default=SubdomainStrategy.SEPARATE)
    force_single_root: bool = Field(
        default=False,
        description="Gather multiple roots under one inferred super-root",
    )
    ignore_query: bool = Field(
        default=False,
        description="Leave query strings out of the hierarchy; URLs differing only by query collapse",
    )
    ignore_fragment: bool = Field(default=True)
    root_name: str = Field(default="root", description="Label for a synthesized super-root")
    context: str = Field(default="url", description="Edge context label")


@dataclass(frozen=True)
class Level:
    segments: tuple[str, ...]
    href: str


@dataclass(frozen=True)
class UrlPath:
    """The levels of one URL, top first. ``host_index`` marks the URL's own host level."""

    levels: tuple[Level, ...]
    host_index: int

    @property
    def segments(self) -> tuple[str, ...]:
        return self.levels[-1].segments

    @property
    def sortable_key(self) -> str:
        return "/".join(self.segments)


def url_path(
    url: SplitResult,
    subdomains: SubdomainStrategy = SubdomainStrategy.SEPARATE,
    ignore_query: bool = False,
    ignore_fragment: bool = True,
) -> UrlPath:
    """Compute the hierarchy levels for an already-normalized URL."""
    scheme = url.scheme.lower()
    _, host, port = split_netloc(url.netloc)
    host = host.lower()
    hostport = f"{host}:{port}" if port else host

    levels: list[Level] = []
    if subdomains is SubdomainStrategy.CHILDREN:
        subdomain, domain = host_parts(host)
        domainport = f"{domain}:{port}" if port else domain
        segments: tuple[str, ...] = (scheme, domainport)
        levels.append(Level(segments, urlunsplit((scheme, domainport, "/", "", ""))))
        if subdomain:
            segments += (subdomain,)
            levels.append(Level(segments, urlunsplit((scheme, hostport, "/", "", ""))))
    else:
        segments = (scheme, hostport)
        levels.append(Level(segments, urlunsplit((scheme, hostport, "/", "", ""))))
    host_index = len(levels) - 1

    path = ""
    for part in url.path.split("/"):
        if not part:
            continue
        path = f"{path}/{part}"
        segments += (part,)
        levels.append(Level(segments, urlunsplit((scheme, hostport, path, "", ""))))

    if url.query and not ignore_query:
        segments += (f"?{url.query}",)
        levels.append(Level(segments, urlunsplit((scheme, hostport, path or "/", url.query, ""))))

    if url.fragment and not ignore_fragment:
        query = "" if ignore_query else url.query
        segments += (f"#{url.fragment}",)
        levels.append(Level(segments, urlunsplit((scheme, hostport, path or "/", query, url.fragment))))

    return UrlPath(tuple(levels), host_index)


@dataclass
class HierarchyBuildResult:
    tree: HierarchyTree[UrlIdentity]
    orphans: list[UrlNode] = field(default_factory=list)
    discarded: list[UrlNode] = field(default_factory=list)
    unparsable: list[UrlIdentity] = field(default_factory=list)
    collapsed: list[UrlIdentity] = field(default_factory=list)
    adopted: set[str] = field(default_factory=set)
    context: str = "url"

    @property
    def roots(self) -> list[UrlNode]:
        return self.tree.find_roots()

    @property
    def inferred(self) -> list[UrlNode]:
        return [node for node in self.tree if node.inferred]

    def node_for_href(self, href: str) -> Optional[UrlNode]:
        """Look up a node by its normalized href."""
        return self.tree.get(url_key(href))

    def edges(self) -> list[HierarchyEdge]:
        """Parent/child edges; links made across a gap are marked inferred."""
        return self.tree.edges(self.context, self.adopted)

    def summary(self) -> dict:
        return {
            "nodes": len(self.tree),
            "inferred": len(self.inferred),
            "roots": len(self.roots),
            "orphans": len(self.orphans),
            "discarded": len(self.discarded),
            "unparsable": len(self.unparsable),
            "collapsed": len(self.collapsed),
        }


class UrlHierarchyBuilder:
    """Maps pool entries onto a ``HierarchyTree`` using URL path ancestry."""

    def __init__(
        self,
        options: Optional[HierarchyOptions] = None,
        normalizer: Optional[Normalizer] = None,
        pool_options: Optional[PoolOptions] = None,
    ) -> None:
        self.options = options or HierarchyOptions()
        self.normalizer = normalizer
        self.pool_options = pool_options

    def make_node(self, identity: UrlIdentity) -> UrlNode:
        return HierarchyNode(identity, id=identity.key, name=identity.normalized)

    def url_path(self, identity: UrlIdentity) -> UrlPath:
        return url_path(
            identity.parsed,
            subdomains=self.options.subdomains,
            ignore_query=self.options.ignore_query,
            ignore_fragment=self.options.ignore_fragment,
        )

    def build(self, source: Union[UniqueUrlPool, Iterable[PoolInput]]) -> HierarchyBuildResult:
        if isinstance(source, UniqueUrlPool):
            pool = source
        else:
            pool = UniqueUrlPool(source, options=self.pool_options, normalizer=self.normalizer)

        tree: HierarchyTree[UrlIdentity] = HierarchyTree(make_node=self.make_node)
        result = HierarchyBuildResult(tree=tree, context=self.options.context)

        index: dict[tuple[str, ...], UrlNode] = {}
        paths: dict[str, UrlPath] = {}
        for identity in pool.values():
            if not identity.parsable:
                result.unparsable.append(identity)
                continue
            path = self.url_path(identity)
            if path.segments in index:
                result.collapsed.append(identity)
                continue
            (node,) = tree.add(identity, populate=False)
            index[path.segments] = node
            paths[node.id] = path
        result.unparsable.extend(pool.unparsable_values())

        ordered = sorted(paths.items(), key=lambda item: (item[1].sortable_key, item[0]), reverse=True)
        pruned: list[UrlNode] = []
        for node_id, path in ordered:
            node = tree[node_id]
            if not self._link(node, path, index, paths, result):
                pruned.append(node)

        if pruned:
            self._discard(tree, pruned, result)

        if self.options.force_single_root:
            self._consolidate_roots(tree)

        tree.sort_children(lambda n: paths[n.id].sortable_key if n.id in paths else n.name)
        result.orphans = tree.find_orphans()

        logger.debug(f"Built URL hierarchy: {result.summary()}")
        return result

    def _link(
        self,
        node: UrlNode,
        path: UrlPath,
        index: dict[tuple[str, ...], UrlNode],
        paths: dict[str, UrlPath],
        result: HierarchyBuildResult,
    ) -> bool:
        """Attach ``node`` to its parent. Returns False if the node must be pruned."""
        levels = path.levels
        position = len(levels) - 1
        if position == 0:
            return True

        if position == path.host_index:
            # A subdomain host under its bare domain; a missing bare domain is not a gap.
            parent = index.get(levels[0].segments)
            if parent is not None:
                node.set_parent(parent)
            return True

        direct = index.get(levels[position - 1].segments)
        if direct is not None:
            node.set_parent(direct)
            return True

        strategy = self.options.gap_strategy
        if strategy is GapStrategy.PRUNE:
            return False
        if strategy is GapStrategy.SEPARATE:
            return True

        ancestor_position = None
        for candidate in range(position - 2, -1, -1):
            if levels[candidate].segments in index:
                ancestor_position = candidate
                break
        if ancestor_position is None:
            return True

        parent = index[levels[ancestor_position].segments]
        if strategy is GapStrategy.ADOPT:
            node.set_parent(parent)
            result.adopted.add(node.id)
            return True

        for missing in range(ancestor_position + 1, position):
            level = levels[missing]
            filler = result.tree.insert(self._synthesize(level))
            filler.set_parent(parent)
            index[level.segments] = filler
            paths[filler.id] = UrlPath(levels[: missing + 1], path.host_index)
            parent = filler
        node.set_parent(parent)
        return True

    def _synthesize(self, level: Level) -> UrlNode:
        identity = make_identity(level.href, normalizer=identity_normalizer, source=UrlSource.PATH)
        return HierarchyNode(identity, id=identity.key, inferred=True, name=identity.normalized)

    def _discard(
        self,
        tree: HierarchyTree[UrlIdentity],
        pruned: list[UrlNode],
        result: HierarchyBuildResult,
    ) -> None:
        doomed: list[UrlNode] = []
        seen: set[str] = set()
        for node in pruned:
            for member in node.flattened:
                if member.id not in seen:
                    seen.add(member.id)
                    doomed.append(member)
        result.discarded.extend(tree.remove(doomed))
        logger.debug(f"Pruned {len(pruned)} gapped URLs, {len(doomed)} nodes discarded")

    def _consolidate_roots(self, tree: HierarchyTree[UrlIdentity]) -> None:
        roots = tree.find_roots()
        if len(roots) < 2:
            return
        name = self.options.root_name
        super_root: UrlNode = HierarchyNode(
            None,
            id=root_key(name, [root.id for root in roots]),
            inferred=True,
            name=name,
        )
        tree.insert(super_root)
        for root in roots:
            root.set_parent(super_root)


def build_url_hierarchy(
    urls: Union[UniqueUrlPool, Iterable[PoolInput]],
    options: Optional[HierarchyOptions] = None,
    normalizer: Optional[Normalizer] = None,
) -> HierarchyBuildResult:
    """Build a URL hierarchy in one call."""
    return UrlHierarchyBuilder(options, normalizer=normalizer).build(urls)
