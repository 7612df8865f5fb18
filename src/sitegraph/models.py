"""Pydantic models for URL identities, crawl records and hierarchy edges."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from pydantic import BaseModel, ConfigDict, Field


class UrlSource(str, Enum):
    """Where a URL came from."""

    PAGE = "page"
    SITEMAP = "sitemap"
    IMPORT = "import"
    PATH = "path"


class UrlIdentity(BaseModel):
    """A raw URL string, its canonical form and its stable identity key."""

    model_config = ConfigDict(frozen=True)

    raw: str = Field(description="The input string, preserved verbatim")
    normalized: Optional[str] = Field(
        default=None,
        description="Canonical href, or None when the raw string could not be parsed",
    )
    key: str = Field(description="Deterministic identity key")
    depth: int = Field(default=0, ge=0, description="Distance from a crawl seed")
    referer: Optional[str] = Field(default=None, description="URL of the page this one was found on")
    source: UrlSource = Field(default=UrlSource.IMPORT)

    @property
    def parsable(self) -> bool:
        return self.normalized is not None

    @property
    def parsed(self) -> Optional[SplitResult]:
        if self.normalized is None:
            return None
        return urlsplit(self.normalized)

    def __str__(self) -> str:
        return self.normalized or self.raw


class HierarchyEdge(BaseModel):
    """One child -> parent relationship, shaped for an edge collection upsert."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Stable key derived from (parent, child, context)")
    child: str = Field(description="Key of the child node")
    parent: str = Field(description="Key of the parent node")
    context: str = Field(default="url")
    inferred: bool = Field(default=False)


class PageRecord(BaseModel):
    """What the fetch layer reports back for a single page."""

    url: str
    success: bool = False
    status_code: Optional[int] = None
    links: list[str] = Field(default_factory=list)
    depth: int = 0
    referer: Optional[str] = None
    error: Optional[str] = None
