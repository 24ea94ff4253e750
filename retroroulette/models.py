"""
Data models for RetroRoulette
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True)
class ParsedIdentity:
    """Canonical title and descriptive tags parsed from a raw name"""
    title: str
    regions: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = ()
    other_properties: Tuple[str, ...] = ()

    @classmethod
    def build(cls, title: str, regions: Iterable[str] = (),
              languages: Iterable[str] = (),
              other_properties: Iterable[str] = ()) -> 'ParsedIdentity':
        return cls(
            title=title,
            regions=_unique(regions),
            languages=_unique(languages),
            other_properties=tuple(other_properties),
        )

    def props_string(self) -> str:
        """Render the tag groups as a variant key, e.g. "USA | En, Fr | Rev 1"."""
        groups = (self.regions, self.languages, self.other_properties)
        return " | ".join(", ".join(g) for g in groups if g)

    def to_dict(self) -> Dict:
        return {
            'title': self.title,
            'regions': list(self.regions),
            'languages': list(self.languages),
            'other_properties': list(self.other_properties),
        }


@dataclass(frozen=True)
class RawItem:
    """A file path, list entry or machine name plus its parsed identity"""
    target: str
    identity: ParsedIdentity


@dataclass
class Variant:
    """One concrete realization of a Selectable"""
    key: str
    item: RawItem


@dataclass
class Selectable:
    """A playable title, possibly backed by several variants"""
    name: str
    owner_id: str
    variants: List[Variant] = field(default_factory=list)
    preferred_key: Optional[str] = None

    def variant_keys(self) -> List[str]:
        keys: List[str] = []
        for variant in self.variants:
            if variant.key not in keys:
                keys.append(variant.key)
        return keys

    def variant(self, key: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.key == key:
                return variant
        return None

    def default_variant(self) -> Optional[str]:
        """Key of the variant to use when the user has not picked one."""
        if self.preferred_key is not None and self.variant(self.preferred_key):
            return self.preferred_key
        from .grouper import default_variant
        chosen = default_variant(self.variants)
        return chosen.key if chosen else None

    def matches(self, name_filter: 'NameFilter') -> bool:
        return name_filter.matches(self.name)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'owner_id': self.owner_id,
            'variants': self.variant_keys(),
            'default_variant': self.default_variant(),
        }


@dataclass(frozen=True)
class NameFilter:
    """Snapshot of the live name filter text"""
    text: str = ""

    def matches(self, name: str) -> bool:
        if not self.text:
            return True
        return self.text.casefold() in name.casefold()

    def __bool__(self) -> bool:
        return bool(self.text)


MATCH_ALL = NameFilter()
