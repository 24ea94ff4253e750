"""
Category tree persistence - save/load the node tree and shared MAME state as JSON.

Only configuration is stored: tree shape, names, enabled flags, weights and
source settings. Selectables and anything derived from them are rebuilt on load.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from .nodes import (
    GroupCategory, LeafCategory, SelectionNode, SelectionTree, WeightError, _check_weight, new_node_id,
)
from .shared_config import CONFIG_FILE
from .sources import KIND_MAME, SOURCE_TYPES, MameCatalog, MameSource

log = logging.getLogger(__name__)

KIND_GROUP = "Group"
CONFIG_VERSION = 1


def node_to_dict(node: SelectionNode) -> Dict:
    if isinstance(node, GroupCategory):
        return {
            'type': KIND_GROUP,
            'id': node.node_id,
            'name': node.name,
            'children': [node_to_dict(c) for c in node.children],
        }
    if isinstance(node, LeafCategory):
        if node.source is None:
            raise ValueError(f"Leaf '{node.name}' has no source to save")
        data = {
            'type': node.source.kind,
            'id': node.node_id,
            'name': node.name,
            'enabled': node.enabled,
            'weight': node.weight,
        }
        data.update(node.source.to_dict())
        return data
    raise TypeError(f"Not a selection node: {node!r}")


def node_from_dict(d: Dict, catalog: Optional[MameCatalog] = None,
                   seen_ids: Optional[Set[str]] = None) -> Optional[SelectionNode]:
    """Build a node from its saved form. Unknown node types are skipped (None)."""
    seen_ids = seen_ids if seen_ids is not None else set()
    node_id = str(d.get('id') or '')
    if not node_id or node_id in seen_ids:
        node_id = new_node_id()
    seen_ids.add(node_id)

    kind = d.get('type')
    if kind == KIND_GROUP:
        children = []
        for child_data in d.get('children', []):
            child = node_from_dict(child_data, catalog, seen_ids)
            if child is not None:
                children.append(child)
        return GroupCategory(name=d.get('name', ''), children=children, node_id=node_id)

    source_type = SOURCE_TYPES.get(kind)
    if source_type is None:
        log.warning("Skipping node with unknown type %r", kind)
        return None
    if kind == KIND_MAME:
        source = MameSource.from_dict(d, catalog)
    else:
        source = source_type.from_dict(d)

    try:
        weight = _check_weight(d.get('weight', 0))
    except WeightError:
        log.warning("Ignoring invalid weight %r for %s", d.get('weight'), d.get('name', node_id))
        weight = 0.0
    return LeafCategory(
        name=d.get('name', ''),
        enabled=bool(d.get('enabled', True)),
        weight=weight,
        source=source,
        node_id=node_id,
    )


@dataclass
class AppConfig:
    """Everything that is persisted between runs"""
    root: GroupCategory = field(default_factory=lambda: GroupCategory(name="All Games"))
    mame_catalog: MameCatalog = field(default_factory=MameCatalog)

    def build_tree(self) -> SelectionTree:
        return SelectionTree(self.root)

    def to_dict(self) -> Dict:
        return {
            'version': CONFIG_VERSION,
            'root': node_to_dict(self.root),
            'shared_mame': self.mame_catalog.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> 'AppConfig':
        catalog = MameCatalog.from_dict(d.get('shared_mame', {}))
        root = None
        if d.get('root'):
            root = node_from_dict(d['root'], catalog)
        if not isinstance(root, GroupCategory):
            root = GroupCategory(name="All Games")
        return cls(root=root, mame_catalog=catalog)


def load_config(path: str = CONFIG_FILE) -> AppConfig:
    """Load the saved tree. A missing file gives an empty configuration."""
    if not os.path.exists(path):
        log.info("No config at %s, starting empty", path)
        return AppConfig()
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except ValueError as e:
            raise ValueError(f"Invalid config file {path}: {e}")
    config = AppConfig.from_dict(data)
    log.info("Config loaded: %s", path)
    return config


def save_config(config: AppConfig, path: str = CONFIG_FILE) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
    log.info("Config saved: %s", path)
    return path
