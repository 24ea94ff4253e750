"""
Category tree and weighted random selection.

A node is either a ``LeafCategory`` (holds Selectables produced by a source)
or a ``GroupCategory`` (aggregates child nodes). All weight, enable and draw
logic dispatches over those two kinds in one place.
"""

from __future__ import annotations

import logging
import math
import operator
import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from .models import MATCH_ALL, NameFilter, Selectable

log = logging.getLogger(__name__)

_rng = random.Random()


class WeightError(ValueError):
    """Raised for weights that are negative, NaN or infinite."""


class TreeEditError(ValueError):
    """Raised when a structural edit would corrupt the tree."""


def new_node_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(eq=False)
class LeafCategory:
    """A category that holds Selectables directly"""
    name: str = ""
    enabled: bool = True
    weight: float = 0.0
    source: Any = None
    selectables: List[Selectable] = field(default_factory=list)
    node_id: str = field(default_factory=new_node_id)

    def install(self, selectables: List[Selectable]) -> None:
        """Replace the Selectable list in one step."""
        self.selectables = list(selectables)
        if self.weight == 0:
            self.weight = float(len(self.selectables))

    def reset_weight(self) -> None:
        self.weight = float(len(self.selectables))

    def any_match(self, name_filter: NameFilter = MATCH_ALL) -> bool:
        return any(s.matches(name_filter) for s in self.selectables)

    def filtered(self, name_filter: NameFilter = MATCH_ALL) -> List[Selectable]:
        return [s for s in self.selectables if s.matches(name_filter)]


@dataclass(eq=False)
class GroupCategory:
    """A category whose enabled flag and weight are derived from its children"""
    name: str = ""
    children: List['SelectionNode'] = field(default_factory=list)
    node_id: str = field(default_factory=new_node_id)

    @property
    def enabled(self) -> bool:
        return node_enabled(self)

    @enabled.setter
    def enabled(self, value: bool) -> None:
        set_enabled(self, value)

    @property
    def weight(self) -> float:
        return node_weight(self)

    @weight.setter
    def weight(self, value: float) -> None:
        set_weight(self, value)


SelectionNode = Union[LeafCategory, GroupCategory]


def _unknown_node(node: Any) -> TypeError:
    return TypeError(f"Not a selection node: {node!r}")


# ── Aggregates ─────────────────────────────────────────────────

def node_enabled(node: SelectionNode) -> bool:
    if isinstance(node, LeafCategory):
        return node.enabled
    if isinstance(node, GroupCategory):
        return any(node_enabled(child) for child in node.children)
    raise _unknown_node(node)


def node_weight(node: SelectionNode) -> float:
    if isinstance(node, LeafCategory):
        return node.weight
    if isinstance(node, GroupCategory):
        return sum(node_weight(child) for child in node.children)
    raise _unknown_node(node)


def effective_weight(node: SelectionNode, name_filter: NameFilter = MATCH_ALL) -> float:
    """Share of the node's weight that currently counts toward draws."""
    if isinstance(node, LeafCategory):
        if node.enabled and node.any_match(name_filter):
            return node.weight
        return 0.0
    if isinstance(node, GroupCategory):
        if not node_enabled(node):
            return 0.0
        return sum(effective_weight(child, name_filter) for child in node.children)
    raise _unknown_node(node)


def weight_fraction(node: SelectionNode, root: SelectionNode,
                    name_filter: NameFilter = MATCH_ALL) -> float:
    total = effective_weight(root, name_filter)
    if total <= 0:
        return 0.0
    return effective_weight(node, name_filter) / total


# ── Mutation ───────────────────────────────────────────────────

def _check_weight(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise WeightError(f"Weight must be a number, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise WeightError(f"Weight must be a finite value >= 0, got {value!r}")
    return value


def set_weight(node: SelectionNode, value: float) -> None:
    """
    Set a node's weight.

    Groups scale every child by ``value / current`` so the children keep their
    relative shares. A group whose current weight is 0 has no shares to keep,
    so the value is split evenly between its children instead.
    """
    value = _check_weight(value)
    if isinstance(node, LeafCategory):
        node.weight = value
        return
    if isinstance(node, GroupCategory):
        if not node.children:
            return
        current = node_weight(node)
        if current > 0:
            factor = value / current
            for child in node.children:
                set_weight(child, node_weight(child) * factor)
        else:
            share = value / len(node.children)
            for child in node.children:
                set_weight(child, share)
        return
    raise _unknown_node(node)


def set_enabled(node: SelectionNode, value: bool) -> None:
    if isinstance(node, LeafCategory):
        node.enabled = bool(value)
        return
    if isinstance(node, GroupCategory):
        for child in node.children:
            set_enabled(child, value)
        return
    raise _unknown_node(node)


def reset_all(root: SelectionNode) -> None:
    """Enable every leaf and reset its weight to its Selectable count."""
    for leaf in iter_leaves(root):
        leaf.enabled = True
        leaf.reset_weight()


# ── Traversal ──────────────────────────────────────────────────

def walk(node: SelectionNode) -> Iterator[SelectionNode]:
    """Yield the node and all its descendants, depth first."""
    yield node
    if isinstance(node, GroupCategory):
        for child in node.children:
            yield from walk(child)


def iter_leaves(node: SelectionNode) -> Iterator[LeafCategory]:
    for sub in walk(node):
        if isinstance(sub, LeafCategory):
            yield sub


def iter_selectables(node: SelectionNode) -> Iterator[Selectable]:
    for leaf in iter_leaves(node):
        yield from leaf.selectables


def filtered_selectables(node: SelectionNode, name_filter: NameFilter = MATCH_ALL,
                         enabled_only: bool = False) -> List[Selectable]:
    result = []
    for leaf in iter_leaves(node):
        if enabled_only and not leaf.enabled:
            continue
        result.extend(leaf.filtered(name_filter))
    return result


# ── Random draw ────────────────────────────────────────────────

def draw_random(node: SelectionNode, name_filter: NameFilter = MATCH_ALL,
                rng: Optional[random.Random] = None) -> Optional[Selectable]:
    """
    Draw a Selectable, weighting each category by its effective weight.

    Returns None when nothing is eligible. Within a leaf every matching
    Selectable is equally likely; the leaf weight only sets the category's share.
    """
    rng = rng or _rng
    total = effective_weight(node, name_filter)
    if total <= 0:
        return None

    if isinstance(node, LeafCategory):
        return rng.choice(node.filtered(name_filter))
    if not isinstance(node, GroupCategory):
        raise _unknown_node(node)

    r = rng.random() * total
    cumulative = 0.0
    last_eligible = None
    for child in node.children:
        child_weight = effective_weight(child, name_filter)
        cumulative += child_weight
        if child_weight > 0:
            last_eligible = child
        if r < cumulative:
            return draw_random(child, name_filter, rng)

    # r can round up to the total; the interval then belongs to the last eligible child
    if last_eligible is not None:
        return draw_random(last_eligible, name_filter, rng)
    return None


# ── Structure ──────────────────────────────────────────────────

class SelectionTree:
    """
    Owns the root group and an id index over every node.

    Structural edits go through this class so the index and the parent links
    stay in step with the tree.
    """

    def __init__(self, root: Optional[GroupCategory] = None):
        self.root = root if root is not None else GroupCategory(name="All Games")
        self._nodes: Dict[str, SelectionNode] = {}
        self._parents: Dict[str, Optional[str]] = {}
        self._reindex()

    def _reindex(self) -> None:
        nodes: Dict[str, SelectionNode] = {}
        parents: Dict[str, Optional[str]] = {}

        def visit(node: SelectionNode, parent_id: Optional[str]) -> None:
            if node.node_id in nodes:
                raise TreeEditError(f"Duplicate node id: {node.node_id}")
            nodes[node.node_id] = node
            parents[node.node_id] = parent_id
            if isinstance(node, GroupCategory):
                for child in node.children:
                    visit(child, node.node_id)

        visit(self.root, None)
        self._nodes = nodes
        self._parents = parents

    # Lookup

    def find(self, node_id: str) -> Optional[SelectionNode]:
        return self._nodes.get(node_id)

    def get(self, node_id: str) -> SelectionNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise TreeEditError(f"Unknown node id: {node_id}")
        return node

    def parent_of(self, node_id: str) -> Optional[GroupCategory]:
        parent_id = self._parents.get(node_id)
        return self._nodes[parent_id] if parent_id else None  # type: ignore[return-value]

    def walk(self) -> Iterator[SelectionNode]:
        return walk(self.root)

    def leaves(self) -> List[LeafCategory]:
        return list(iter_leaves(self.root))

    def owner_of(self, selectable: Selectable) -> Optional[LeafCategory]:
        node = self._nodes.get(selectable.owner_id)
        return node if isinstance(node, LeafCategory) else None

    def is_ancestor(self, ancestor_id: str, node_id: Optional[str]) -> bool:
        """True when ``ancestor_id`` is ``node_id`` or one of its ancestors."""
        while node_id is not None:
            if node_id == ancestor_id:
                return True
            node_id = self._parents.get(node_id)
        return False

    # Edits

    def _group(self, node_id: str) -> GroupCategory:
        node = self.get(node_id)
        if not isinstance(node, GroupCategory):
            raise TreeEditError(f"Node {node_id} is not a group")
        return node

    @staticmethod
    def _check_index(index) -> Optional[int]:
        if index is None:
            return None
        try:
            return operator.index(index)
        except TypeError:
            raise TreeEditError(f"Child index must be an integer, got {index!r}")

    def add_node(self, parent_id: str, node: SelectionNode,
                 index: Optional[int] = None) -> SelectionNode:
        parent = self._group(parent_id)
        index = self._check_index(index)
        new_ids = [n.node_id for n in walk(node)]
        if len(set(new_ids)) != len(new_ids):
            raise TreeEditError("Node ids inside the added subtree are not unique")
        clashes = [i for i in new_ids if i in self._nodes]
        if clashes:
            raise TreeEditError(f"Duplicate node id: {clashes[0]}")

        if index is None:
            parent.children.append(node)
        else:
            parent.children.insert(index, node)
        self._reindex()
        log.info("Node added: %s -> %s", node.name or node.node_id, parent.name or parent_id)
        return node

    def move_node(self, node_id: str, new_parent_id: str,
                  index: Optional[int] = None) -> None:
        node = self.get(node_id)
        if node is self.root:
            raise TreeEditError("The root node cannot be moved")
        new_parent = self._group(new_parent_id)
        if self.is_ancestor(node_id, new_parent_id):
            raise TreeEditError("A node cannot be moved into its own subtree")
        index = self._check_index(index)

        old_parent = self.parent_of(node_id)
        old_parent.children.remove(node)
        if index is None:
            new_parent.children.append(node)
        else:
            new_parent.children.insert(index, node)
        self._reindex()
        log.info("Node moved: %s -> %s", node.name or node_id, new_parent.name or new_parent_id)

    def delete_node(self, node_id: str) -> SelectionNode:
        node = self.get(node_id)
        if node is self.root:
            raise TreeEditError("The root node cannot be deleted")
        self.parent_of(node_id).children.remove(node)
        self._reindex()
        log.info("Node deleted: %s", node.name or node_id)
        return node

    def _shift(self, node_id: str, offset: int) -> bool:
        node = self.get(node_id)
        parent = self.parent_of(node_id)
        if parent is None:
            return False
        i = parent.children.index(node)
        j = i + offset
        if j < 0 or j >= len(parent.children):
            return False
        parent.children[i], parent.children[j] = parent.children[j], parent.children[i]
        return True

    def move_up(self, node_id: str) -> bool:
        return self._shift(node_id, -1)

    def move_down(self, node_id: str) -> bool:
        return self._shift(node_id, 1)


def node_summary(node: SelectionNode, root: SelectionNode,
                 name_filter: NameFilter = MATCH_ALL) -> Dict[str, Any]:
    """Nested display data for a node: weights, share of the draw and game counts."""
    data: Dict[str, Any] = {
        'id': node.node_id,
        'name': node.name,
        'kind': 'Group' if isinstance(node, GroupCategory) else getattr(node.source, 'kind', ''),
        'enabled': node_enabled(node),
        'weight': node_weight(node),
        'effective_weight': effective_weight(node, name_filter),
        'fraction': weight_fraction(node, root, name_filter),
        'game_count': len(filtered_selectables(node, name_filter)),
    }
    if isinstance(node, GroupCategory):
        data['children'] = [node_summary(c, root, name_filter) for c in node.children]
    return data
