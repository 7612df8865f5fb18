import itertools
from urllib.parse import urlsplit

from sitegraph.identity import make_identity
from sitegraph.models import UrlSource
from sitegraph.pool import PoolOptions, UniqueUrlPool
from sitegraph.url_hierarchy import (
    GapStrategy,
    HierarchyOptions,
    SubdomainStrategy,
    UrlHierarchyBuilder,
    build_url_hierarchy,
    url_path,
)

FULL_CHAIN = ["https://x.com/a/b", "https://x.com/a", "https://x.com"]
GAPPED_CHAIN = ["https://x.com/a/b", "https://x.com"]


def _build(urls, **options):
    return build_url_hierarchy(urls, HierarchyOptions(**options))


def _assert_well_formed(result) -> None:
    for node in result.tree:
        assert node not in node.ancestors
        parent = node.parent
        if parent is not None:
            assert [c.id for c in parent.children].count(node.id) == 1
            owners = [n for n in result.tree if node.id in n.child_ids]
            assert owners == [parent]


def test_full_chain_adopts_nothing() -> None:
    result = _build(FULL_CHAIN, gap_strategy=GapStrategy.ADOPT)

    root = result.node_for_href("https://x.com/")
    a = result.node_for_href("https://x.com/a")
    b = result.node_for_href("https://x.com/a/b")
    assert len(result.tree) == 3
    assert result.inferred == []
    assert b.parent is a
    assert a.parent is root
    assert result.roots == [root]
    assert result.adopted == set()
    assert all(not edge.inferred for edge in result.edges())
    _assert_well_formed(result)


def test_bridge_fills_the_missing_level() -> None:
    result = _build(GAPPED_CHAIN, gap_strategy=GapStrategy.BRIDGE)

    root = result.node_for_href("https://x.com/")
    middle = result.node_for_href("https://x.com/a")
    leaf = result.node_for_href("https://x.com/a/b")
    assert len(result.tree) == 3
    assert middle.inferred is True
    assert middle.data.source is UrlSource.PATH
    assert not root.inferred and not leaf.inferred
    assert leaf.parent is middle
    assert middle.parent is root
    assert all(edge.inferred for edge in result.edges())
    _assert_well_formed(result)


def test_prune_discards_the_gapped_leaf() -> None:
    result = _build(GAPPED_CHAIN, gap_strategy=GapStrategy.PRUNE)

    root = result.node_for_href("https://x.com/")
    assert len(result.tree) == 1
    assert [node.name for node in result.discarded] == ["https://x.com/a/b"]
    assert result.node_for_href("https://x.com/a/b") is None
    assert result.orphans == [root]
    assert result.edges() == []


def test_prune_takes_descendants_along() -> None:
    result = _build(
        ["https://x.com", "https://x.com/a/b", "https://x.com/a/b/c", "https://x.com/d"],
        gap_strategy=GapStrategy.PRUNE,
    )

    assert {node.name for node in result.discarded} == {"https://x.com/a/b", "https://x.com/a/b/c"}
    assert len(result.tree) == 2
    assert all(node.id not in result.tree for node in result.discarded)
    assert result.node_for_href("https://x.com/d").parent is result.node_for_href("https://x.com/")


def test_adopt_links_across_the_gap() -> None:
    result = _build(GAPPED_CHAIN, gap_strategy=GapStrategy.ADOPT)

    root = result.node_for_href("https://x.com/")
    leaf = result.node_for_href("https://x.com/a/b")
    assert len(result.tree) == 2
    assert leaf.parent is root
    assert result.adopted == {leaf.id}
    assert result.inferred == []
    (edge,) = result.edges()
    assert edge.inferred is True
    assert edge.child == leaf.id and edge.parent == root.id


def test_separate_leaves_the_gapped_item_alone() -> None:
    result = _build(GAPPED_CHAIN + ["https://x.com/a/b/c"], gap_strategy=GapStrategy.SEPARATE)

    leaf = result.node_for_href("https://x.com/a/b")
    assert leaf.parent is None
    assert leaf.is_root
    assert result.node_for_href("https://x.com/") in result.orphans
    assert leaf not in result.orphans


def test_no_ancestor_at_all_leaves_items_parentless() -> None:
    for strategy in (GapStrategy.ADOPT, GapStrategy.BRIDGE):
        result = _build(["https://x.com/a/b", "https://x.com/c/d"], gap_strategy=strategy)

        assert len(result.tree) == 2
        assert len(result.orphans) == 2
        assert result.inferred == []


def test_deep_gaps_bridge_every_level() -> None:
    urls = ["https://x.com", "https://x.com/a/b/c/d", "https://x.com/a/b/e", "https://x.com/f/g/h"]
    result = _build(urls, gap_strategy=GapStrategy.BRIDGE)

    assert {node.name for node in result.inferred} == {
        "https://x.com/a",
        "https://x.com/a/b",
        "https://x.com/a/b/c",
        "https://x.com/f",
        "https://x.com/f/g",
    }
    assert len(result.tree) == 9
    for node in result.tree:
        parent = node.parent
        if parent is None:
            continue
        child_path = urlsplit(node.name).path.rstrip("/")
        parent_path = urlsplit(parent.name).path.rstrip("/")
        assert child_path.rpartition("/")[0] == parent_path
    assert result.roots == [result.node_for_href("https://x.com/")]
    _assert_well_formed(result)


def test_deep_gaps_adopt_the_nearest_ancestor() -> None:
    urls = ["https://x.com", "https://x.com/a", "https://x.com/a/b/c/d", "https://x.com/q/r/s"]
    result = _build(urls, gap_strategy=GapStrategy.ADOPT)

    a = result.node_for_href("https://x.com/a")
    root = result.node_for_href("https://x.com/")
    assert result.node_for_href("https://x.com/a/b/c/d").parent is a
    assert result.node_for_href("https://x.com/q/r/s").parent is root
    assert len(result.adopted) == 2
    _assert_well_formed(result)


def test_input_order_does_not_change_the_tree() -> None:
    urls = [
        "https://x.com",
        "https://x.com/a",
        "https://x.com/a/b/c",
        "https://x.com/a/z",
        "https://x.com/m/n",
    ]
    shapes = set()
    for order in itertools.permutations(urls):
        result = _build(list(order), gap_strategy=GapStrategy.BRIDGE)
        shapes.add(frozenset((node.name, node.parent_id) for node in result.tree))
    assert len(shapes) == 1


def test_children_are_sorted() -> None:
    result = _build(["https://x.com/c", "https://x.com/a", "https://x.com/b", "https://x.com"])

    root = result.node_for_href("https://x.com/")
    assert [child.name for child in root.children] == [
        "https://x.com/a",
        "https://x.com/b",
        "https://x.com/c",
    ]


def test_subdomains_as_children() -> None:
    urls = ["https://x.com", "https://blog.x.com", "https://blog.x.com/post"]
    result = _build(urls, subdomains=SubdomainStrategy.CHILDREN)

    root = result.node_for_href("https://x.com/")
    blog = result.node_for_href("https://blog.x.com/")
    assert blog.parent is root
    assert result.node_for_href("https://blog.x.com/post").parent is blog
    assert result.roots == [root]


def test_subdomains_as_separate_roots() -> None:
    urls = ["https://x.com", "https://blog.x.com", "https://blog.x.com/post"]
    result = _build(urls)

    blog = result.node_for_href("https://blog.x.com/")
    assert blog.parent is None
    assert result.roots == [blog]
    assert result.orphans == [result.node_for_href("https://x.com/")]


def test_missing_bare_domain_is_not_a_gap() -> None:
    result = _build(
        ["https://blog.x.com", "https://blog.x.com/post"],
        subdomains=SubdomainStrategy.CHILDREN,
        gap_strategy=GapStrategy.PRUNE,
    )

    assert result.discarded == []
    assert result.roots == [result.node_for_href("https://blog.x.com/")]


def test_bridge_synthesizes_a_missing_subdomain_host() -> None:
    result = _build(
        ["https://x.com", "https://blog.x.com/post"],
        subdomains=SubdomainStrategy.CHILDREN,
        gap_strategy=GapStrategy.BRIDGE,
    )

    blog = result.node_for_href("https://blog.x.com/")
    assert blog.inferred is True
    assert blog.parent is result.node_for_href("https://x.com/")
    assert result.node_for_href("https://blog.x.com/post").parent is blog


def test_force_single_root() -> None:
    urls = ["https://x.com", "https://x.com/a", "https://y.com", "https://y.com/b", "https://z.com"]
    result = _build(urls, force_single_root=True, root_name="sites")

    (root,) = result.roots
    assert root.inferred is True
    assert root.data is None
    assert root.name == "sites"
    assert [child.name for child in root.children] == ["https://x.com/", "https://y.com/"]
    assert result.orphans == [result.node_for_href("https://z.com/")]
    _assert_well_formed(result)


def test_single_root_is_left_alone() -> None:
    result = _build(FULL_CHAIN, force_single_root=True)

    assert result.roots == [result.node_for_href("https://x.com/")]
    assert result.inferred == []


def test_query_strings_are_a_level_unless_ignored() -> None:
    urls = ["https://x.com/a", "https://x.com/a?page=2"]

    result = _build(urls)
    page = result.node_for_href("https://x.com/a?page=2")
    assert page.parent is result.node_for_href("https://x.com/a")

    ignored = _build(urls, ignore_query=True)
    assert len(ignored.tree) == 1
    assert [identity.normalized for identity in ignored.collapsed] == ["https://x.com/a?page=2"]


def test_trailing_slash_variants_collapse_onto_one_node() -> None:
    result = _build(["https://x.com/a", "https://x.com/a/", "https://x.com/a/index.html"])

    assert len(result.tree) == 1
    assert [identity.normalized for identity in result.collapsed] == ["https://x.com/a/"]


def test_unparsable_entries_go_to_the_side_channel() -> None:
    result = _build(["https://x.com", "not a url"])

    assert len(result.tree) == 1
    assert [identity.raw for identity in result.unparsable] == ["not a url"]
    assert result.unparsable[0].parsable is False

    pool = UniqueUrlPool(["https://x.com", "::nope"], options=PoolOptions(keep_unparsable=True))
    kept = UrlHierarchyBuilder().build(pool)
    assert len(kept.tree) == 1
    assert [identity.raw for identity in kept.unparsable] == ["::nope"]


def test_rebuilding_yields_identical_edges() -> None:
    urls = ["https://x.com", "https://x.com/a/b", "https://x.com/a/c", "https://x.com/d"]
    options = HierarchyOptions(gap_strategy=GapStrategy.BRIDGE)

    first = UrlHierarchyBuilder(options).build(urls).edges()
    second = UrlHierarchyBuilder(options).build(list(reversed(urls))).edges()

    assert sorted(edge.key for edge in first) == sorted(edge.key for edge in second)
    assert len({edge.key for edge in first}) == len(first)


def test_summary_counts() -> None:
    result = _build(GAPPED_CHAIN + ["junk"], gap_strategy=GapStrategy.BRIDGE)

    assert result.summary() == {
        "nodes": 3,
        "inferred": 1,
        "roots": 1,
        "orphans": 0,
        "discarded": 0,
        "unparsable": 1,
        "collapsed": 0,
    }


def test_url_path_levels() -> None:
    path = url_path(urlsplit("https://blog.x.com/a/b?q=1"), SubdomainStrategy.CHILDREN)

    assert path.segments == ("https", "x.com", "blog", "a", "b", "?q=1")
    assert path.host_index == 1
    assert [level.href for level in path.levels] == [
        "https://x.com/",
        "https://blog.x.com/",
        "https://blog.x.com/a",
        "https://blog.x.com/a/b",
        "https://blog.x.com/a/b?q=1",
    ]
    assert path.sortable_key == "https/x.com/blog/a/b/?q=1"

    separate = url_path(urlsplit("https://blog.x.com:8080/a#frag"), ignore_fragment=False)
    assert separate.segments == ("https", "blog.x.com:8080", "a", "#frag")
    assert separate.host_index == 0


def test_unparsable_identities_are_returned_untouched() -> None:
    bad = make_identity("not a url", depth=2, referer="https://x.com/", source=UrlSource.PAGE)
    result = build_url_hierarchy([bad, "https://x.com"])

    assert result.unparsable == [bad]
    assert result.unparsable[0] is bad
    assert result.unparsable[0].depth == 2
