"""sitegraph: URL identity and site hierarchy reconstruction for web crawls."""

from .hierarchy import CycleError, HierarchyError, HierarchyNode, HierarchyTree, SelfParentError
from .identity import make_identity
from .models import HierarchyEdge, PageRecord, UrlIdentity, UrlSource
from .normalize import DEFAULT_NORMALIZER, NormalizerOptions, build_normalizer
from .pool import PoolOptions, UniqueUrlPool
from .url_hierarchy import (
    GapStrategy,
    HierarchyBuildResult,
    HierarchyOptions,
    SubdomainStrategy,
    UrlHierarchyBuilder,
    build_url_hierarchy,
)

__all__ = [
    "CycleError",
    "DEFAULT_NORMALIZER",
    "GapStrategy",
    "HierarchyBuildResult",
    "HierarchyEdge",
    "HierarchyError",
    "HierarchyNode",
    "HierarchyOptions",
    "HierarchyTree",
    "NormalizerOptions",
    "PageRecord",
    "PoolOptions",
    "SelfParentError",
    "SubdomainStrategy",
    "UniqueUrlPool",
    "UrlHierarchyBuilder",
    "UrlIdentity",
    "UrlSource",
    "build_normalizer",
    "build_url_hierarchy",
    "make_identity",
]
