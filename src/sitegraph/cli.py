"""CLI entry point for sitegraph."""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from .discovery import CrawlOptions, discover_urls
from .filters import UrlMatchStrategy
from .identity import make_identity
from .pool import PoolOptions
from .url_hierarchy import (
    GapStrategy,
    HierarchyBuildResult,
    HierarchyOptions,
    SubdomainStrategy,
    UrlHierarchyBuilder,
)


def _ensure_utf8() -> None:
    """Ensure stdout/stderr use UTF-8 on Windows to avoid charmap errors."""
    if sys.platform == "win32":
        os.environ.setdefault("PYTHONUTF8", "1")
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")


def _read_urls(urls: list[str], path: Optional[str]) -> list[str]:
    """Positional URLs plus one URL per line from ``path`` ("-" for stdin)."""
    collected = list(urls)
    if path:
        if path == "-":
            lines = sys.stdin.read().splitlines()
        else:
            with open(path, encoding="utf-8") as handle:
                lines = handle.read().splitlines()
        for line in lines:
            line = line.strip()
            if line and not line.startswith("#"):
                collected.append(line)
    return collected


def _add_hierarchy_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--gaps",
        choices=[s.value for s in GapStrategy],
        default=GapStrategy.ADOPT.value,
        help="How to handle URLs whose parent page is missing (default: adopt)",
    )
    parser.add_argument(
        "--subdomains",
        choices=[s.value for s in SubdomainStrategy],
        default=SubdomainStrategy.SEPARATE.value,
        help="Treat subdomains as children of their domain, or as separate roots (default: separate)",
    )
    parser.add_argument(
        "--single-root",
        action="store_true",
        help="Gather multiple roots under one inferred root",
    )
    parser.add_argument(
        "--ignore-query",
        action="store_true",
        help="Leave query strings out of the hierarchy",
    )
    parser.add_argument(
        "--keep-fragment",
        action="store_true",
        help="Treat #fragments as their own hierarchy level",
    )
    parser.add_argument(
        "--display-depth",
        type=int,
        default=None,
        help="Collapse the printed tree below this depth",
    )
    parser.add_argument(
        "--display-children",
        type=int,
        default=None,
        help="Print at most this many children per node",
    )


def _hierarchy_options(args: argparse.Namespace) -> HierarchyOptions:
    return HierarchyOptions(
        gap_strategy=GapStrategy(args.gaps),
        subdomains=SubdomainStrategy(args.subdomains),
        force_single_root=args.single_root,
        ignore_query=args.ignore_query,
        ignore_fragment=not args.keep_fragment,
    )


def _result_payload(result: HierarchyBuildResult) -> dict:
    return {
        "summary": result.summary(),
        "nodes": [
            {
                "key": node.id,
                "url": node.data.normalized if node.data is not None else None,
                "name": node.name,
                "inferred": node.inferred,
                "parent": node.parent_id,
            }
            for node in result.tree
        ],
        "edges": [edge.model_dump() for edge in result.edges()],
        "orphans": [node.id for node in result.orphans],
        "discarded": [node.name for node in result.discarded],
        "unparsable": [identity.raw for identity in result.unparsable],
    }


def _print_result(result: HierarchyBuildResult, args: argparse.Namespace) -> None:
    if args.output == "json":
        print(json.dumps(_result_payload(result), indent=2))
        return

    tree_text = result.tree.to_tree_string(
        max_depth=args.display_depth,
        max_children=args.display_children,
    )
    if tree_text:
        print(tree_text)
    summary = result.summary()
    print(f"\n{'='*60}")
    for label, value in summary.items():
        print(f"  {label.capitalize():<12}{value}")
    print(f"{'='*60}")
    for identity in result.unparsable:
        print(f"  Unparsable: {identity.raw}")
    for node in result.discarded:
        print(f"  Discarded:  {node.name}")


def _run_normalize(args: argparse.Namespace) -> int:
    identities = [make_identity(url) for url in args.urls]
    if args.output == "json":
        print(json.dumps([i.model_dump(mode="json") for i in identities], indent=2))
        return 0
    for identity in identities:
        if identity.parsable:
            print(f"{identity.key}  {identity.normalized}")
        else:
            print(f"UNPARSABLE  {identity.raw}")
    return 0


def _run_tree(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    urls = _read_urls(args.urls, args.file)
    if not urls:
        parser.error("no URLs given; pass them as arguments or with --file")
    builder = UrlHierarchyBuilder(
        _hierarchy_options(args),
        pool_options=PoolOptions(guess_scheme=args.guess_scheme),
    )
    result = builder.build(urls)
    _print_result(result, args)
    return 0


def _run_crawl(args: argparse.Namespace) -> int:
    options = CrawlOptions(
        max_pages=args.max_pages,
        max_depth=args.max_depth,
        max_workers=args.max_workers,
        crawl_scope=UrlMatchStrategy(args.scope),
    )
    crawl = asyncio.run(discover_urls(args.seeds, options))
    result = UrlHierarchyBuilder(_hierarchy_options(args)).build(crawl.pool)
    _print_result(result, args)
    if crawl.errors and args.output != "json":
        print(f"  Fetch errors: {len(crawl.errors)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitegraph",
        description="Normalize URLs and rebuild site hierarchies from flat URL lists",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--output",
        choices=["json", "table"],
        default="table",
        help="Output format (default: table)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    normalize = commands.add_parser("normalize", help="Print the normalized form and key of URLs")
    normalize.add_argument("urls", nargs="+", help="One or more URLs")

    tree = commands.add_parser("tree", help="Build a hierarchy from a list of URLs")
    tree.add_argument("urls", nargs="*", help="URLs to include")
    tree.add_argument("--file", "-f", default=None, help="File with one URL per line, or - for stdin")
    tree.add_argument(
        "--guess-scheme",
        action="store_true",
        help="Assume https:// for entries without a scheme",
    )
    _add_hierarchy_arguments(tree)

    crawl = commands.add_parser("crawl", help="Crawl from seed URLs, then build a hierarchy")
    crawl.add_argument("seeds", nargs="+", help="Seed URLs")
    crawl.add_argument("--max-pages", type=int, default=50, help="Maximum pages to fetch (default: 50)")
    crawl.add_argument("--max-depth", type=int, default=3, help="Maximum link depth (default: 3)")
    crawl.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Max concurrent fetches (default: auto-detect from system resources)",
    )
    crawl.add_argument(
        "--scope",
        choices=[s.value for s in UrlMatchStrategy],
        default=UrlMatchStrategy.SAME_DOMAIN.value,
        help="Which discovered links are followed (default: same-domain)",
    )
    _add_hierarchy_arguments(crawl)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    _ensure_utf8()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "normalize":
        return _run_normalize(args)
    if args.command == "tree":
        return _run_tree(args, parser)
    return _run_crawl(args)


if __name__ == "__main__":
    sys.exit(main())
