from retroroulette.grouper import default_variant, group_items
from retroroulette.models import ParsedIdentity, RawItem, Variant
from retroroulette.parser import NameParser


def _item(name):
    return RawItem(target=name + ".bin", identity=NameParser.parse(name))


def _variant(regions, other=()):
    identity = ParsedIdentity.build("Game", regions=regions, other_properties=other)
    return Variant(key=identity.props_string(), item=RawItem(target="x", identity=identity))


def test_items_with_same_title_share_a_selectable():
    games = group_items([_item("Game (USA)"), _item("Game (Japan)"), _item("Other Game (USA)")], "leaf1")

    assert [g.name for g in games] == ["Game", "Other Game"]
    assert games[0].variant_keys() == ["USA", "Japan"]
    assert len(games[1].variants) == 1
    assert all(g.owner_id == "leaf1" for g in games)


def test_selectables_keep_first_seen_order():
    games = group_items([_item("B (USA)"), _item("A (USA)"), _item("B (Japan)")], "leaf1")

    assert [g.name for g in games] == ["B", "A"]


def test_default_variant_prefers_plain_usa_release():
    japan = _variant(["Japan"])
    usa = _variant(["USA"])
    usa_europe = _variant(["USA", "Europe"], ["Rev 1"])

    assert default_variant([japan, usa, usa_europe]) is usa


def test_default_variant_falls_back_when_no_preference_matches():
    first = _variant(["Japan"], ["Rev 1"])
    second = _variant(["Europe"], ["Beta"])

    assert default_variant([first, second]) is first
    assert default_variant([]) is None


def test_default_variant_keeps_usa_even_with_extra_properties():
    europe = _variant(["Europe"])
    usa_rev = _variant(["USA"], ["Rev 1"])

    assert default_variant([europe, usa_rev]) is usa_rev


def test_selectable_default_variant_key():
    game = group_items([_item("Game (Japan)"), _item("Game (USA) (Rev 1)"), _item("Game (USA)")], "leaf1")[0]

    assert game.default_variant() == "USA"


def test_same_tags_under_one_title_keep_both_items():
    first = RawItem(target="Game (USA).bin", identity=NameParser.parse("Game (USA)"))
    second = RawItem(target="Game (USA).zip", identity=NameParser.parse("Game (USA)"))

    games = group_items([first, second], "leaf1")

    assert len(games) == 1
    assert len(games[0].variants) == 2
    assert games[0].variant_keys() == ["USA"]
    assert games[0].variant("USA").item is first
