"""
RetroRoulette - pick a random game from your collection

Games come from ROM folders, plain name lists or a MAME installation, are
grouped into titles with variants, and are drawn from a weighted category tree.
"""

__version__ = '1.0.0'
__author__ = 'RetroRoulette'

from .models import ParsedIdentity, RawItem, Variant, Selectable, NameFilter
from .parser import NameParser
from .grouper import group_items, default_variant
from .nodes import (
    LeafCategory, GroupCategory, SelectionTree, WeightError, TreeEditError,
    draw_random, set_weight, set_enabled,
)
from .sources import FolderSource, NameListSource, MameSource, MameCatalog
from .config import AppConfig, load_config, save_config


__all__ = [
    'ParsedIdentity',
    'RawItem',
    'Variant',
    'Selectable',
    'NameFilter',
    'NameParser',
    'group_items',
    'default_variant',
    'LeafCategory',
    'GroupCategory',
    'SelectionTree',
    'WeightError',
    'TreeEditError',
    'draw_random',
    'set_weight',
    'set_enabled',
    'FolderSource',
    'NameListSource',
    'MameSource',
    'MameCatalog',
    'AppConfig',
    'load_config',
    'save_config',
]
