"""Generic ownership trees.

Nodes live in a single arena owned by a ``HierarchyTree`` and refer to each
other by id. A node knows its parent id and an ordered list of child ids; all
linking goes through the tree so both sides of a relationship always change
together. Nothing in here knows about URLs.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Callable, Generic, Iterable, Iterator, Optional, TypeVar, Union

from .keys import edge_key
from .models import HierarchyEdge

logger = logging.getLogger(__name__)

T = TypeVar("T")

_node_ids = itertools.count()


class HierarchyError(ValueError):
    """A tree operation would break the ownership invariants."""


class SelfParentError(HierarchyError):
    pass


class CycleError(HierarchyError):
    pass


class HierarchyNode(Generic[T]):
    """A node with an opaque payload, at most one parent and ordered children."""

    def __init__(
        self,
        data: Optional[T] = None,
        id: Optional[str] = None,
        inferred: bool = False,
        name: Optional[str] = None,
    ) -> None:
        self.id = id if id is not None else str(next(_node_ids))
        self.data = data
        self.inferred = inferred
        self._name = name
        self.parent_id: Optional[str] = None
        self.child_ids: list[str] = []
        self._tree: Optional[HierarchyTree[T]] = None

    def __repr__(self) -> str:
        flag = " inferred" if self.inferred else ""
        return f"<HierarchyNode {self.id!r}{flag}>"

    @property
    def name(self) -> str:
        """Display label; falls back to the id."""
        return self._name if self._name is not None else self.id

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @property
    def tree(self) -> "HierarchyTree[T]":
        if self._tree is None:
            raise HierarchyError(f"Node {self.id!r} does not belong to a tree")
        return self._tree

    @property
    def parent(self) -> Optional["HierarchyNode[T]"]:
        if self.parent_id is None:
            return None
        return self.tree.get(self.parent_id)

    @property
    def children(self) -> list["HierarchyNode[T]"]:
        if not self.child_ids:
            return []
        return [self.tree[child_id] for child_id in self.child_ids]

    # Mutation

    def set_parent(self, new_parent: Optional["HierarchyNode[T]"]) -> None:
        """Move this node under ``new_parent``, or detach it when None."""
        if new_parent is None:
            if self.parent_id is not None:
                self.tree.detach(self)
            return
        self.tree.attach(self, new_parent)

    def add_child(self, child: "HierarchyNode[T]") -> None:
        if child.parent_id == self.id and child.id in self.child_ids:
            return
        self.tree.attach(child, self)

    def remove_child(self, child: "HierarchyNode[T]") -> None:
        if child.id not in self.child_ids:
            return
        self.tree.detach(child)

    # Views

    @property
    def ancestors(self) -> list["HierarchyNode[T]"]:
        """Parent first, root last; empty for a node without a parent."""
        chain: list[HierarchyNode[T]] = []
        seen = {self.id}
        current = self.parent
        while current is not None:
            if current.id in seen:
                raise CycleError(f"Cycle detected above node {self.id!r}")
            seen.add(current.id)
            chain.append(current)
            current = current.parent
        return chain

    @property
    def descendants(self) -> list["HierarchyNode[T]"]:
        """Every node below this one, in pre-order."""
        result: list[HierarchyNode[T]] = []
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            result.append(node)
            stack.extend(reversed(node.children))
        return result

    @property
    def flattened(self) -> list["HierarchyNode[T]"]:
        return [self, *self.descendants]

    @property
    def siblings(self) -> list["HierarchyNode[T]"]:
        parent = self.parent
        if parent is None:
            return []
        return [child for child in parent.children if child.id != self.id]

    @property
    def depth(self) -> int:
        return len(self.ancestors)

    @property
    def is_root(self) -> bool:
        """No parent, at least one child."""
        return self.parent_id is None and len(self.child_ids) > 0

    @property
    def is_orphan(self) -> bool:
        """No parent and no children."""
        return self.parent_id is None and not self.child_ids

    @property
    def is_leaf(self) -> bool:
        """A parent but no children."""
        return self.parent_id is not None and not self.child_ids

    def count_descendants(self) -> int:
        return len(self.descendants)

    def to_tree_string(
        self,
        max_depth: Optional[int] = None,
        max_children: Optional[int] = None,
        indent: str = "  ",
        label: Optional[Callable[["HierarchyNode[T]"], str]] = None,
    ) -> str:
        """Indented rendering of this node and its subtree, for debugging."""
        lines: list[str] = []
        self._render(lines, 0, max_depth, max_children, indent, label or (lambda n: n.name))
        return "\n".join(lines)

    def _render(self, lines, level, max_depth, max_children, indent, label) -> None:
        prefix = f"{indent * level}└─ " if level else ""
        text = f"{prefix}{label(self)}"
        children = self.children
        if children and max_depth is not None and level >= max_depth:
            lines.append(f"{text} ({self.count_descendants()} descendants)")
            return
        lines.append(text)

        shown = children if max_children is None else children[:max_children]
        for child in shown:
            child._render(lines, level + 1, max_depth, max_children, indent, label)

        hidden = children[len(shown):]
        if hidden:
            summary = f"{indent * (level + 1)}…{len(hidden)} additional children"
            hidden_descendants = sum(child.count_descendants() for child in hidden)
            if hidden_descendants:
                summary += f", with {hidden_descendants} descendants"
            lines.append(summary)


NodeRef = Union[HierarchyNode[T], str]


class HierarchyTree(Generic[T]):
    """Arena of ``HierarchyNode`` instances plus the linking rules between them.

    ``make_node`` turns a raw payload into a node; ``populate`` is an optional
    hook that recomputes relationships after payloads are added.
    """

    def __init__(
        self,
        make_node: Optional[Callable[[T], HierarchyNode[T]]] = None,
        populate: Optional[Callable[["HierarchyTree[T]"], None]] = None,
    ) -> None:
        self._make_node = make_node or (lambda payload: HierarchyNode(payload))
        self._populate = populate
        self._nodes: dict[str, HierarchyNode[T]] = {}

    # Collection

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[HierarchyNode[T]]:
        return iter(list(self._nodes.values()))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, HierarchyNode):
            return self._nodes.get(item.id) is item
        return item in self._nodes

    def __getitem__(self, node_id: str) -> HierarchyNode[T]:
        return self._nodes[node_id]

    def get(self, node_id: str) -> Optional[HierarchyNode[T]]:
        return self._nodes.get(node_id)

    @property
    def nodes(self) -> list[HierarchyNode[T]]:
        return list(self._nodes.values())

    def add(self, payload: Union[T, list[T], tuple], populate: bool = True) -> list[HierarchyNode[T]]:
        """Wrap one or many payloads in nodes and insert them."""
        payloads = payload if isinstance(payload, (list, tuple)) else [payload]
        added = [self.insert(self._make_node(p)) for p in payloads]
        if populate and self._populate is not None:
            self._populate(self)
        return added

    def insert(self, node: HierarchyNode[T]) -> HierarchyNode[T]:
        """Insert a pre-built node. An id that is already present keeps its existing node."""
        existing = self._nodes.get(node.id)
        if existing is not None:
            return existing
        if node._tree is not None and node._tree is not self:
            raise HierarchyError(f"Node {node.id!r} already belongs to another tree")
        node._tree = self
        self._nodes[node.id] = node
        return node

    def remove(self, target: Union[NodeRef, list], populate: bool = False) -> list[HierarchyNode[T]]:
        """Drop nodes from the tree. Their children become parent-less; nothing cascades."""
        targets = target if isinstance(target, (list, tuple)) else [target]
        removed: list[HierarchyNode[T]] = []
        for ref in targets:
            node = self._resolve(ref)
            if node is None:
                continue
            node.set_parent(None)
            for child in node.children:
                child.set_parent(None)
            del self._nodes[node.id]
            node._tree = None
            removed.append(node)
        if populate and self._populate is not None:
            self._populate(self)
        return removed

    def _resolve(self, ref: NodeRef) -> Optional[HierarchyNode[T]]:
        if isinstance(ref, HierarchyNode):
            return ref if ref in self else None
        return self._nodes.get(ref)

    # Linking

    def _check_member(self, node: HierarchyNode[T]) -> None:
        if self._nodes.get(node.id) is not node:
            raise HierarchyError(f"Node {node.id!r} does not belong to this tree")

    def attach(self, child: HierarchyNode[T], parent: HierarchyNode[T]) -> None:
        """Make ``parent`` the parent of ``child``, validating before any change."""
        self._check_member(child)
        self._check_member(parent)
        if child.id == parent.id:
            raise SelfParentError(f"Node {child.id!r} cannot be its own parent")
        if child.parent_id == parent.id:
            if child.id not in parent.child_ids:
                parent.child_ids.append(child.id)
            return
        if any(ancestor.id == child.id for ancestor in parent.ancestors):
            raise CycleError(f"Node {child.id!r} is an ancestor of {parent.id!r}")
        self.detach(child)
        child.parent_id = parent.id
        parent.child_ids.append(child.id)

    def detach(self, child: HierarchyNode[T]) -> None:
        if child.parent_id is None:
            return
        parent = self._nodes.get(child.parent_id)
        if parent is not None and child.id in parent.child_ids:
            parent.child_ids.remove(child.id)
        child.parent_id = None

    # Queries

    def find_roots(self) -> list[HierarchyNode[T]]:
        return [node for node in self._nodes.values() if node.is_root]

    def find_root(self) -> Optional[HierarchyNode[T]]:
        """The root with the most descendants; the first one wins ties."""
        roots = self.find_roots()
        if not roots:
            return None
        return max(roots, key=lambda node: node.count_descendants())

    def find_orphans(self) -> list[HierarchyNode[T]]:
        return [node for node in self._nodes.values() if node.is_orphan]

    def find_leaves(self) -> list[HierarchyNode[T]]:
        return [node for node in self._nodes.values() if node.is_leaf]

    def top_level(self) -> list[HierarchyNode[T]]:
        """Roots and orphans, in insertion order."""
        return [node for node in self._nodes.values() if node.parent_id is None]

    def sort_children(self, key: Callable[[HierarchyNode[T]], Any]) -> None:
        for node in self._nodes.values():
            if len(node.child_ids) > 1:
                node.child_ids.sort(key=lambda child_id: key(self._nodes[child_id]))

    def edges(self, context: str = "url", inferred_links: Iterable[str] = ()) -> list[HierarchyEdge]:
        """One edge per parented node.

        An edge is inferred when either end is an inferred node, or when the
        child's id is listed in ``inferred_links``.
        """
        flagged = set(inferred_links)
        result: list[HierarchyEdge] = []
        for node in self._nodes.values():
            if node.parent_id is None:
                continue
            parent = self._nodes[node.parent_id]
            result.append(
                HierarchyEdge(
                    key=edge_key(parent.id, node.id, context),
                    child=node.id,
                    parent=parent.id,
                    context=context,
                    inferred=node.inferred or parent.inferred or node.id in flagged,
                )
            )
        return result

    def to_tree_string(self, **kwargs: Any) -> str:
        return "\n".join(node.to_tree_string(**kwargs) for node in self.top_level())
