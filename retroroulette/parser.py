"""
ROM name parser for No-Intro / Redump style file names
"""

import re
from typing import List, Optional, Tuple

from .models import ParsedIdentity


# Articles that naming conventions move to the end of a title ("Legend of Heroes, The").
# Order matters: the first article that matches wins.
ARTICLES: Tuple[str, ...] = tuple(dict.fromkeys([
    "The", "A", "An",                          # English
    "El", "La", "Los", "Las",                  # Spanish
    "Il", "L'", "La", "I", "Gli", "Le",        # Italian
    "Die", "Der", "Das", "Ein",                # German
    "Le", "Les", "L'", "La", "Un", "Une", "Des",  # French
    "As",                                      # Portuguese
    "Het", "De", "Een",                        # Dutch
]))

VALID_REGIONS = frozenset({
    # Countries
    "Argentina", "Australia", "Austria", "Belgium", "Brazil", "Canada",
    "China", "Croatia", "Czech", "Denmark", "Finland", "France", "Germany",
    "Greece", "Hong Kong", "India", "Ireland", "Israel", "Italy", "Japan",
    "Korea", "Mexico", "Netherlands", "New Zealand", "Norway", "Poland",
    "Portugal", "Russia", "South Africa", "Spain", "Sweden", "Switzerland",
    "Taiwan", "Turkey", "UK", "USA", "United Kingdom",
    # Multi-country areas
    "Scandinavia", "Europe", "Asia", "Latin America",
    # Other
    "World", "Unknown",
})

_NAME_RE = re.compile(
    r'^(?P<title>.+?)'
    r'(?P<props>(?: \([^()]+?\))*)'
    r'(?: \[(?P<status>.+?)\])?$'
)
_PROP_RE = re.compile(r' \(([^()]+?)\)')
# N-games-in-one releases carry one language list per game, joined by '+'
_LANGUAGES_RE = re.compile(r'^[A-Z][a-z](?:[,+][A-Z][a-z])*$')


class NameParser:
    """Parser for ROM names of the form ``Title (Region) (Languages) (Props) [status]``"""

    @staticmethod
    def is_bios(name: str) -> bool:
        return name.startswith("[BIOS]")

    @staticmethod
    def parse(raw_name: str) -> ParsedIdentity:
        """
        Parse a raw ROM name into a canonical title plus tags.

        Never fails: names that do not follow the naming convention come back
        as a title with no tags.
        """
        match = _NAME_RE.match(raw_name)
        if match is None:
            # Only the empty string gets here
            return ParsedIdentity.build(NameParser.fix_articles(raw_name))

        title = match.group('title')
        groups = _PROP_RE.findall(match.group('props'))

        region_index = NameParser._find_region_group(groups)
        if region_index is None:
            bare_name = title + match.group('props')
            return ParsedIdentity.build(NameParser.fix_articles(bare_name))

        # Parenthesised text before the region belongs to the title
        title += "".join(f" ({g})" for g in groups[:region_index])
        props = groups[region_index:]

        regions = props[0].split(", ")
        languages: List[str] = []
        remaining = props[1:]
        if remaining and _LANGUAGES_RE.match(remaining[0]):
            languages = re.split(r'[,+]', remaining[0])
            remaining = remaining[1:]

        return ParsedIdentity.build(
            NameParser.fix_articles(title),
            regions=regions,
            languages=languages,
            other_properties=remaining,
        )

    @staticmethod
    def _find_region_group(groups: List[str]) -> Optional[int]:
        for i, group in enumerate(groups):
            if VALID_REGIONS.issuperset(group.split(", ")):
                return i
        return None

    @staticmethod
    def fix_articles(name: str) -> str:
        """Move a trailing article to the front: "Legend, The" -> "The Legend"."""
        # NOTE: "Sugoroku, The '92 - Nari Tore" style names are left alone
        if " + " in name:
            return " + ".join(NameParser.fix_articles(n) for n in name.split(" + "))

        for article in ARTICLES:
            prefix = article if article.endswith("'") else article + " "

            if name.endswith(f", {article}"):
                return prefix + name[:-(2 + len(article))]

            for separator in (" - ", " ~ "):
                pattern = f", {article}{separator}"
                if pattern in name:
                    return prefix + name.replace(pattern, separator)

        return name
