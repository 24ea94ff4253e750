import math
import random

import pytest

from retroroulette.models import NameFilter, ParsedIdentity, RawItem, Selectable, Variant
from retroroulette.nodes import (
    GroupCategory, LeafCategory, SelectionTree, TreeEditError, WeightError,
    draw_random, effective_weight, filtered_selectables, node_enabled, node_summary,
    node_weight, reset_all, set_enabled, set_weight, weight_fraction,
)


def _leaf(name, games, weight=None, enabled=True):
    leaf = LeafCategory(name=name, enabled=enabled)
    leaf.install([
        Selectable(name=g, owner_id=leaf.node_id,
                   variants=[Variant(key="", item=RawItem(target=g, identity=ParsedIdentity.build(g)))])
        for g in games
    ])
    if weight is not None:
        leaf.weight = weight
    return leaf


@pytest.fixture
def tree():
    snes = _leaf("SNES", ["Zelda", "Mario World", "F-Zero"], weight=3)
    nes = _leaf("NES", ["Mario Bros", "Metroid"], weight=1)
    arcade = _leaf("Arcade", ["Pac-Man", "Galaga", "Dig Dug", "Mario Bros"], weight=4)
    consoles = GroupCategory(name="Consoles", children=[snes, nes])
    return SelectionTree(GroupCategory(name="All", children=[consoles, arcade]))


def _by_name(tree, name):
    return next(n for n in tree.walk() if n.name == name)


def test_install_sets_weight_to_count_only_when_unset():
    leaf = _leaf("L", ["a", "b", "c"])
    assert leaf.weight == 3

    leaf.install([])
    assert leaf.weight == 3


def test_group_weight_and_enabled_are_derived(tree):
    consoles = _by_name(tree, "Consoles")

    assert node_weight(consoles) == 4
    assert consoles.weight == 4
    set_enabled(_by_name(tree, "SNES"), False)
    assert consoles.enabled
    set_enabled(_by_name(tree, "NES"), False)
    assert not consoles.enabled


def test_group_reweight_keeps_child_ratios(tree):
    consoles = _by_name(tree, "Consoles")

    set_weight(consoles, 10)

    assert math.isclose(node_weight(consoles), 10)
    assert math.isclose(_by_name(tree, "SNES").weight, 7.5)
    assert math.isclose(_by_name(tree, "NES").weight, 2.5)


def test_nested_group_reweight_scales_every_leaf(tree):
    set_weight(tree.root, 4)

    assert math.isclose(_by_name(tree, "SNES").weight, 1.5)
    assert math.isclose(_by_name(tree, "NES").weight, 0.5)
    assert math.isclose(_by_name(tree, "Arcade").weight, 2)


def test_zero_weight_group_splits_evenly():
    a = _leaf("A", ["x"], weight=0)
    b = _leaf("B", ["y"], weight=0)
    group = GroupCategory(children=[a, b])

    set_weight(group, 6)

    assert a.weight == 3
    assert b.weight == 3


def test_empty_group_reweight_is_noop():
    group = GroupCategory()
    set_weight(group, 5)
    assert node_weight(group) == 0


@pytest.mark.parametrize("value", [-1, float("nan"), float("inf"), "heavy"])
def test_invalid_weights_are_rejected(tree, value):
    snes = _by_name(tree, "SNES")
    with pytest.raises(WeightError):
        set_weight(snes, value)
    assert snes.weight == 3


def test_disable_zeroes_effective_weight(tree):
    consoles = _by_name(tree, "Consoles")

    set_enabled(consoles, False)

    assert effective_weight(consoles) == 0
    assert not _by_name(tree, "SNES").enabled
    assert not _by_name(tree, "NES").enabled
    assert effective_weight(tree.root) == 4


def test_filter_limits_effective_weight_and_fraction(tree):
    mario = NameFilter("mario")

    assert effective_weight(tree.root, mario) == 8
    assert effective_weight(_by_name(tree, "Arcade"), NameFilter("zelda")) == 0
    assert math.isclose(weight_fraction(_by_name(tree, "SNES"), tree.root, NameFilter("zelda")), 1.0)


def test_draw_never_picks_disabled_or_filtered(tree):
    rng = random.Random(7)
    set_enabled(_by_name(tree, "Arcade"), False)
    mario = NameFilter("MARIO")

    for _ in range(500):
        game = draw_random(tree.root, mario, rng)
        assert game is not None
        assert "mario" in game.name.lower()
        assert tree.owner_of(game).name != "Arcade"


def test_draw_frequency_follows_weights(tree):
    rng = random.Random(1234)
    counts = {"SNES": 0, "NES": 0, "Arcade": 0}
    trials = 20000

    for _ in range(trials):
        game = draw_random(tree.root, rng=rng)
        counts[tree.owner_of(game).name] += 1

    assert abs(counts["SNES"] / trials - 3 / 8) < 0.02
    assert abs(counts["NES"] / trials - 1 / 8) < 0.02
    assert abs(counts["Arcade"] / trials - 4 / 8) < 0.02


def test_draw_returns_none_when_nothing_eligible(tree):
    assert draw_random(tree.root, NameFilter("no such game")) is None
    set_enabled(tree.root, False)
    assert draw_random(tree.root) is None
    assert draw_random(GroupCategory()) is None


def test_zero_weight_leaf_is_never_drawn():
    heavy = _leaf("Heavy", ["a"], weight=1)
    empty = _leaf("Zero", ["b"], weight=0)
    group = GroupCategory(children=[empty, heavy])
    rng = random.Random(3)

    for _ in range(200):
        assert draw_random(group, rng=rng).name == "a"


def test_reset_all_restores_counts_and_enables(tree):
    set_weight(tree.root, 100)
    set_enabled(tree.root, False)

    reset_all(tree.root)

    assert node_enabled(tree.root)
    assert _by_name(tree, "SNES").weight == 3
    assert _by_name(tree, "Arcade").weight == 4


def test_filtered_selectables_enabled_only(tree):
    set_enabled(_by_name(tree, "NES"), False)

    names = [g.name for g in filtered_selectables(tree.root, NameFilter("mario"))]
    enabled_names = [g.name for g in filtered_selectables(tree.root, NameFilter("mario"), enabled_only=True)]

    assert names == ["Mario World", "Mario Bros", "Mario Bros"]
    assert enabled_names == ["Mario World", "Mario Bros"]


def test_node_summary_reports_counts_and_children(tree):
    summary = node_summary(tree.root, tree.root)

    assert summary['game_count'] == 9
    assert summary['kind'] == 'Group'
    assert [c['name'] for c in summary['children']] == ["Consoles", "Arcade"]
    assert math.isclose(summary['children'][1]['fraction'], 0.5)


# Structure

def test_owner_lookup(tree):
    game = _by_name(tree, "NES").selectables[0]
    assert tree.owner_of(game) is _by_name(tree, "NES")


def test_move_into_own_subtree_is_rejected(tree):
    consoles = _by_name(tree, "Consoles")
    inner = GroupCategory(name="Inner")
    tree.add_node(consoles.node_id, inner)
    before = [n.name for n in tree.walk()]

    with pytest.raises(TreeEditError):
        tree.move_node(consoles.node_id, inner.node_id)
    with pytest.raises(TreeEditError):
        tree.move_node(consoles.node_id, consoles.node_id)

    assert [n.name for n in tree.walk()] == before


def test_move_node_to_root_and_group(tree):
    nes = _by_name(tree, "NES")

    tree.move_node(nes.node_id, tree.root.node_id)
    assert tree.parent_of(nes.node_id) is tree.root

    tree.move_node(nes.node_id, _by_name(tree, "Consoles").node_id, 0)
    assert _by_name(tree, "Consoles").children[0] is nes


def test_move_into_leaf_is_rejected(tree):
    with pytest.raises(TreeEditError):
        tree.move_node(_by_name(tree, "NES").node_id, _by_name(tree, "Arcade").node_id)


def test_delete_node(tree):
    arcade = _by_name(tree, "Arcade")

    tree.delete_node(arcade.node_id)

    assert tree.find(arcade.node_id) is None
    with pytest.raises(TreeEditError):
        tree.delete_node(tree.root.node_id)
    with pytest.raises(TreeEditError):
        tree.delete_node("missing")


def test_move_up_and_down(tree):
    consoles = _by_name(tree, "Consoles")
    arcade = _by_name(tree, "Arcade")

    assert tree.move_up(arcade.node_id)
    assert tree.root.children == [arcade, consoles]
    assert not tree.move_up(arcade.node_id)
    assert tree.move_down(arcade.node_id)
    assert not tree.move_down(arcade.node_id)
    assert not tree.move_up(tree.root.node_id)


def test_duplicate_ids_are_rejected(tree):
    nes = _by_name(tree, "NES")
    with pytest.raises(TreeEditError):
        tree.add_node(tree.root.node_id, LeafCategory(name="Copy", node_id=nes.node_id))
    with pytest.raises(TreeEditError):
        SelectionTree(GroupCategory(children=[LeafCategory(node_id="x"), LeafCategory(node_id="x")]))


@pytest.mark.parametrize("index", ["0", 1.5, [0]])
def test_non_integer_index_leaves_tree_unchanged(tree, index):
    nes = _by_name(tree, "NES")
    consoles = _by_name(tree, "Consoles")
    before = [n.name for n in tree.walk()]

    with pytest.raises(TreeEditError):
        tree.move_node(nes.node_id, tree.root.node_id, index)
    with pytest.raises(TreeEditError):
        tree.add_node(tree.root.node_id, LeafCategory(name="Extra"), index)

    assert [n.name for n in tree.walk()] == before
    assert tree.parent_of(nes.node_id) is consoles
    assert nes in consoles.children
