import threading

from retroroulette.models import ParsedIdentity, RawItem, Selectable, Variant
from retroroulette.nodes import GroupCategory, LeafCategory
from retroroulette.population import (
    STATUS_CANCELLED, STATUS_ERROR, STATUS_OK, PopulationManager,
)
from retroroulette.sources import MameCatalog, MameSystem, NameListSource, SourceError


class BrokenSource:
    kind = "Broken"

    def refresh(self, cancel_event=None):
        raise SourceError("folder went away")

    def build_selectables(self, items, owner_id):
        return []


class BlockingSource(NameListSource):
    """Waits until the refresh is cancelled, then returns a list anyway."""

    def refresh(self, cancel_event=None):
        cancel_event.wait(5)
        return super().refresh()


def _game(name, owner_id):
    item = RawItem(target=name, identity=ParsedIdentity.build(name))
    return Selectable(name=name, owner_id=owner_id, variants=[Variant(key="", item=item)])


def test_refresh_installs_new_list_and_weight():
    leaf = LeafCategory(name="Board", source=NameListSource(names=["Chess", "Go", "Shogi"]))
    manager = PopulationManager()

    manager.refresh_all(GroupCategory(children=[leaf]))
    finished = manager.wait_all(timeout=5)

    assert [t.status for t in finished] == [STATUS_OK]
    assert [g.name for g in leaf.selectables] == ["Chess", "Go", "Shogi"]
    assert all(g.owner_id == leaf.node_id for g in leaf.selectables)
    assert leaf.weight == 3
    assert manager.last_status[leaf.node_id] == STATUS_OK
    assert not manager.busy


def test_failed_refresh_keeps_previous_list():
    leaf = LeafCategory(name="Folder", source=BrokenSource())
    leaf.install([_game("Old", leaf.node_id)])
    manager = PopulationManager()

    task = manager.refresh_leaf(leaf)
    manager.wait_all(timeout=5)

    assert task.status == STATUS_ERROR
    assert "folder went away" in task.error
    assert [g.name for g in leaf.selectables] == ["Old"]
    assert manager.last_error[leaf.node_id] == "folder went away"


def test_cancelled_refresh_keeps_previous_list():
    leaf = LeafCategory(name="Slow", source=BlockingSource(names=["New"]))
    leaf.install([_game("Old", leaf.node_id)])
    manager = PopulationManager()

    task = manager.refresh_leaf(leaf)
    manager.abort_all()
    manager.wait_all(timeout=5)

    assert task.status == STATUS_CANCELLED
    assert [g.name for g in leaf.selectables] == ["Old"]


def test_leaf_without_source_is_skipped():
    manager = PopulationManager()
    assert manager.refresh_leaf(LeafCategory(name="Empty")) is None
    assert manager.tasks == []


def test_catalog_refresh_installs_systems():
    class FakeCatalog(MameCatalog):
        def refresh(self, cancel_event=None):
            return [MameSystem(short_name="pacman", name_core="Pac-Man")]

    catalog = FakeCatalog(exe_path="/opt/mame/mame")
    manager = PopulationManager()

    task = manager.refresh_catalog(catalog)
    manager.wait_all(timeout=5)

    assert task.status == STATUS_OK
    assert catalog.system("pacman").name_core == "Pac-Man"


def test_refresh_result_waits_for_poll():
    release = threading.Event()

    class GatedSource(NameListSource):
        def refresh(self, cancel_event=None):
            release.wait(5)
            return super().refresh()

    leaf = LeafCategory(name="Gated", source=GatedSource(names=["A"]))
    manager = PopulationManager()
    task = manager.refresh_leaf(leaf)

    assert manager.poll() == []
    assert leaf.selectables == []

    release.set()
    task.wait(5)
    assert leaf.selectables == []
    manager.poll()
    assert [g.name for g in leaf.selectables] == ["A"]
