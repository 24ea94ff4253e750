"""
Groups raw items that share a canonical title into Selectables.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from .models import RawItem, Selectable, Variant


def group_items(items: Iterable[RawItem], owner_id: str) -> List[Selectable]:
    """
    Partition items by canonical title.

    Selectables come out in first-seen title order and keep their variants in
    input order. Two items with the same tag rendering under one title are both
    stored, but only the first is reachable through ``Selectable.variant(key)``.
    """
    by_title: Dict[str, Selectable] = {}
    for item in items:
        title = item.identity.title
        selectable = by_title.get(title)
        if selectable is None:
            selectable = Selectable(name=title, owner_id=owner_id)
            by_title[title] = selectable
        selectable.variants.append(Variant(key=item.identity.props_string(), item=item))
    return list(by_title.values())


def default_variant(variants: Sequence[Variant]) -> Optional[Variant]:
    """
    Pick the variant to use without user input.

    Prefer USA releases, then releases without extra properties (no revisions,
    hacks or rereleases), falling back to the wider set whenever a preference
    would leave nothing. Ties go to input order.
    """
    candidates = list(variants)
    if not candidates:
        return None

    usa = [v for v in candidates if "USA" in v.item.identity.regions]
    if usa:
        candidates = usa

    plain = [v for v in candidates if not v.item.identity.other_properties]
    if plain:
        candidates = plain

    return candidates[0]
