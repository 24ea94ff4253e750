"""
Sources that populate leaf categories: ROM folders, name lists and MAME.

Every source computes a complete list of raw items (possibly off the control
thread) and turns it into Selectables; installing them into a leaf is done by
the caller.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .grouper import group_items
from .models import ParsedIdentity, RawItem, Selectable, Variant
from .parser import NameParser

log = logging.getLogger(__name__)

KIND_FOLDER = "FileFolder"
KIND_NAME_LIST = "NameList"
KIND_MAME = "MAME"


class SourceError(RuntimeError):
    """A source could not produce its item list."""


class RefreshCancelled(Exception):
    """Raised inside a refresh when its cancel event was set."""


def _check_cancel(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RefreshCancelled()


# ── ROM folders ────────────────────────────────────────────────

_EXTENSION_CACHE: Dict[str, List[str]] = {}


@dataclass
class FolderSource:
    """ROM files under a directory, grouped by canonical title"""
    dir_path: str = ""
    supported_extensions: List[str] = field(default_factory=list)
    play_command: List[str] = field(default_factory=list)

    kind = KIND_FOLDER

    @property
    def is_playable(self) -> bool:
        return len(self.play_command) > 0

    def list_extensions(self, refresh: bool = False) -> List[str]:
        """Distinct, sorted, lower-cased extensions of the files under ``dir_path``."""
        if refresh or self.dir_path not in _EXTENSION_CACHE:
            if not os.path.isdir(self.dir_path):
                return []
            exts = set()
            for _root, _dirs, filenames in os.walk(self.dir_path):
                for filename in filenames:
                    exts.add(os.path.splitext(filename)[1].lower())
            _EXTENSION_CACHE[self.dir_path] = sorted(exts)
        return _EXTENSION_CACHE[self.dir_path]

    def refresh(self, cancel_event: Optional[threading.Event] = None) -> List[RawItem]:
        if not os.path.isdir(self.dir_path):
            raise SourceError(f"ROM folder not found: {self.dir_path}")

        wanted = {ext.lower() for ext in self.supported_extensions}
        items = []
        for root, _dirs, filenames in os.walk(self.dir_path):
            _check_cancel(cancel_event)
            for filename in sorted(filenames):
                path = Path(root) / filename
                if path.suffix.lower() not in wanted:
                    continue
                if NameParser.is_bios(filename):
                    continue
                items.append(RawItem(target=str(path), identity=NameParser.parse(path.stem)))

        log.info("Folder scan: %s (%d files)", self.dir_path, len(items))
        return items

    def build_selectables(self, items: List[RawItem], owner_id: str) -> List[Selectable]:
        return group_items(items, owner_id)

    def build_command(self, variant: Variant) -> List[str]:
        return list(self.play_command) + [variant.item.target]

    def to_dict(self) -> Dict:
        return {
            'dir_path': self.dir_path,
            'supported_extensions': list(self.supported_extensions),
            'play_command': list(self.play_command),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> 'FolderSource':
        return cls(
            dir_path=d.get('dir_path', ''),
            supported_extensions=list(d.get('supported_extensions', [])),
            play_command=list(d.get('play_command', [])),
        )


# ── Name lists ─────────────────────────────────────────────────

@dataclass
class NameListSource:
    """A literal list of game names, each launched by the same command"""
    names: List[str] = field(default_factory=list)
    play_command: List[str] = field(default_factory=list)

    kind = KIND_NAME_LIST

    @property
    def is_playable(self) -> bool:
        return len(self.play_command) > 0

    @staticmethod
    def split_names(text: str) -> List[str]:
        """Turn pasted multi-line text into a clean name list."""
        return [line.strip() for line in text.split('\n') if line.strip()]

    def refresh(self, cancel_event: Optional[threading.Event] = None) -> List[RawItem]:
        _check_cancel(cancel_event)
        names = [n.strip() for n in self.names if n and n.strip()]
        return [RawItem(target=n, identity=ParsedIdentity.build(n)) for n in names]

    def build_selectables(self, items: List[RawItem], owner_id: str) -> List[Selectable]:
        return [
            Selectable(name=item.target, owner_id=owner_id, variants=[Variant(key="", item=item)])
            for item in items
        ]

    def build_command(self, variant: Variant) -> List[str]:
        return list(self.play_command)

    def to_dict(self) -> Dict:
        return {
            'names': list(self.names),
            'play_command': list(self.play_command),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> 'NameListSource':
        return cls(
            names=list(d.get('names', [])),
            play_command=list(d.get('play_command', [])),
        )


# ── MAME ───────────────────────────────────────────────────────

@dataclass
class MameSystem:
    """One runnable machine reported by ``mame -listxml``"""
    short_name: str
    name_core: str
    name_variant: str = ""
    clone_of: Optional[str] = None
    year: str = "????"
    players: int = 0
    control_type: str = ""
    button_count: int = 0
    driver_status: str = ""
    has_display: bool = False
    has_software_list: bool = False

    @property
    def parent_name(self) -> str:
        return self.clone_of or self.short_name

    @classmethod
    def from_element(cls, machine: ET.Element) -> 'MameSystem':
        description = machine.findtext('description') or machine.get('name', '')
        paren = description.find('(')
        if paren >= 0:
            name_core = description[:paren].rstrip()
            name_variant = description[paren:]
        else:
            name_core = description
            name_variant = ""

        players = 0
        control_type = ""
        button_count = 0
        input_elem = machine.find('input')
        if input_elem is not None:
            players = _to_int(input_elem.get('players'))
            control = input_elem.find('control')
            if control is not None:
                control_type = control.get('type', '')
                button_count = _to_int(control.get('buttons'))

        driver = machine.find('driver')
        return cls(
            short_name=machine.get('name', ''),
            clone_of=machine.get('cloneof'),
            name_core=name_core,
            name_variant=name_variant,
            year=machine.findtext('year') or "????",
            players=players,
            control_type=control_type,
            button_count=button_count,
            driver_status=driver.get('status', '') if driver is not None else '',
            has_display=machine.find('display') is not None,
            has_software_list=machine.find('softwarelist') is not None,
        )

    def to_dict(self) -> Dict:
        return {
            'short_name': self.short_name,
            'name_core': self.name_core,
            'name_variant': self.name_variant,
            'clone_of': self.clone_of,
            'year': self.year,
            'players': self.players,
            'control_type': self.control_type,
            'button_count': self.button_count,
            'driver_status': self.driver_status,
            'has_display': self.has_display,
            'has_software_list': self.has_software_list,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> 'MameSystem':
        return cls(
            short_name=d['short_name'],
            name_core=d.get('name_core', d['short_name']),
            name_variant=d.get('name_variant', ''),
            clone_of=d.get('clone_of'),
            year=d.get('year', '????'),
            players=d.get('players', 0),
            control_type=d.get('control_type', ''),
            button_count=d.get('button_count', 0),
            driver_status=d.get('driver_status', ''),
            has_display=d.get('has_display', False),
            has_software_list=d.get('has_software_list', False),
        )


def _to_int(value: Optional[str]) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def parse_verifyroms(output: str) -> set:
    """Romset names that ``mame -verifyroms`` did not report as bad."""
    playable = set()
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith("romset ") or line.endswith(" is bad"):
            continue
        words = line.split()
        if len(words) >= 2:
            playable.add(words[1])
    return playable


def parse_listxml(xml_text: str, playable: set) -> List[MameSystem]:
    """Runnable, working, non-BIOS machines the user has ROMs for."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise SourceError(f"Invalid MAME -listxml output: {e}")

    systems = []
    for machine in root.findall('machine'):
        name = machine.get('name')
        if not name or name not in playable:
            continue
        # runnable="no" also covers devices
        if machine.get('runnable') == 'no':
            continue
        if machine.get('isbios') == 'yes':
            continue
        driver = machine.find('driver')
        if driver is not None and driver.get('status') == 'preliminary':
            continue
        input_elem = machine.find('input')
        if input_elem is not None and input_elem.get('players') == '0':
            continue
        systems.append(MameSystem.from_element(machine))
    return systems


def _terminate(proc: subprocess.Popen, timeout_s: float = 1.0) -> None:
    if proc.poll() is not None:
        return
    proc.terminate()
    try:
        proc.wait(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        proc.kill()


@dataclass
class MameCatalog:
    """Machines known to the configured MAME executable, shared by all MAME leaves"""
    exe_path: str = ""
    systems: List[MameSystem] = field(default_factory=list)

    def __post_init__(self):
        self._by_name: Dict[str, MameSystem] = {}
        self._index()

    def _index(self) -> None:
        self._by_name = {s.short_name: s for s in self.systems}

    def install(self, systems: List[MameSystem]) -> None:
        self.systems = list(systems)
        self._index()

    def system(self, short_name: str) -> Optional[MameSystem]:
        return self._by_name.get(short_name)

    def run_tool(self, args: List[str], cancel_event: Optional[threading.Event] = None) -> str:
        """Run the MAME executable and return its stdout, honouring cancellation."""
        if not self.exe_path or not os.path.isfile(self.exe_path):
            raise SourceError(f"MAME executable not found: {self.exe_path}")
        creationflags = 0
        if os.name == "nt" and hasattr(subprocess, "CREATE_NO_WINDOW"):
            creationflags = int(getattr(subprocess, "CREATE_NO_WINDOW"))

        proc = subprocess.Popen(
            [self.exe_path, *args],
            cwd=os.path.dirname(self.exe_path) or None,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            creationflags=creationflags,
        )
        while True:
            try:
                out, _ = proc.communicate(timeout=0.25)
                return out or ""
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    _terminate(proc)
                    raise RefreshCancelled()

    def refresh(self, cancel_event: Optional[threading.Event] = None) -> List[MameSystem]:
        _check_cancel(cancel_event)
        listxml = self.run_tool(['-listxml'], cancel_event)
        verify = self.run_tool(['-verifyroms'], cancel_event)
        _check_cancel(cancel_event)
        systems = parse_listxml(listxml, parse_verifyroms(verify))
        if not systems:
            log.warning("MAME reported no playable machines: %s", self.exe_path)
        log.info("MAME catalog: %d playable machines", len(systems))
        return systems

    def to_dict(self) -> Dict:
        return {
            'exe_path': self.exe_path,
            'systems': [s.to_dict() for s in self.systems],
        }

    @classmethod
    def from_dict(cls, d: Dict) -> 'MameCatalog':
        return cls(
            exe_path=d.get('exe_path', ''),
            systems=[MameSystem.from_dict(s) for s in d.get('systems', [])],
        )


def _paired(systems: List[MameSystem], predicate: Callable[[MameSystem], bool],
            include_true: bool, include_false: bool) -> List[MameSystem]:
    if include_true and include_false:
        return systems
    if include_true:
        return [s for s in systems if predicate(s)]
    if include_false:
        return [s for s in systems if not predicate(s)]
    return []


def _int_keys(d: Dict) -> Dict[int, bool]:
    return {int(k): bool(v) for k, v in (d or {}).items()}


@dataclass
class MameSource:
    """A filtered view of the shared MAME catalog"""
    include_has_display: bool = True
    include_no_display: bool = False
    include_has_software_list: bool = False
    include_no_software_list: bool = True
    include_good_driver: bool = True
    include_imperfect_driver: bool = False
    control_types: Dict[str, bool] = field(default_factory=dict)
    button_counts: Dict[int, bool] = field(default_factory=dict)
    player_counts: Dict[int, bool] = field(default_factory=dict)
    years: Dict[str, bool] = field(default_factory=dict)
    believe_guessed_years: bool = True
    catalog: MameCatalog = field(default_factory=MameCatalog, repr=False, compare=False)

    kind = KIND_MAME

    @property
    def is_playable(self) -> bool:
        return bool(self.catalog.exe_path)

    def fixed_year(self, year: str) -> str:
        """"1987?" counts as 1987 when guessed years are trusted."""
        if self.believe_guessed_years and len(year) == 5 and year[4] == '?':
            return year[:4]
        return year

    def filter_systems(self, systems: List[MameSystem]) -> List[MameSystem]:
        result = list(systems)
        result = _paired(result, lambda s: s.has_display,
                         self.include_has_display, self.include_no_display)
        result = _paired(result, lambda s: s.has_software_list,
                         self.include_has_software_list, self.include_no_software_list)
        result = _paired(result, lambda s: s.driver_status == "good",
                         self.include_good_driver, self.include_imperfect_driver)
        return [
            s for s in result
            if self.control_types.get(s.control_type, True)
            and self.button_counts.get(s.button_count, True)
            and self.player_counts.get(s.players, True)
            and self.years.get(self.fixed_year(s.year), True)
        ]

    def refresh(self, cancel_event: Optional[threading.Event] = None) -> List[RawItem]:
        _check_cancel(cancel_event)
        return [
            RawItem(target=s.short_name,
                    identity=ParsedIdentity.build(s.name_core, other_properties=[s.name_variant] if s.name_variant else []))
            for s in self.filter_systems(self.catalog.systems)
        ]

    def build_selectables(self, items: List[RawItem], owner_id: str) -> List[Selectable]:
        groups: Dict[tuple, List[MameSystem]] = {}
        for item in items:
            system = self.catalog.system(item.target)
            if system is None:
                continue
            groups.setdefault((system.parent_name, system.name_core), []).append(system)

        by_name = {item.target: item for item in items}
        selectables = []
        for (parent_name, name_core), systems in groups.items():
            parent = next((s for s in systems if s.short_name == parent_name), systems[0])
            selectables.append(Selectable(
                name=name_core,
                owner_id=owner_id,
                variants=[Variant(key=s.name_variant, item=by_name[s.short_name]) for s in systems],
                preferred_key=parent.name_variant,
            ))
        return selectables

    def build_command(self, variant: Variant) -> List[str]:
        return [self.catalog.exe_path, variant.item.target]

    def to_dict(self) -> Dict:
        return {
            'include_has_display': self.include_has_display,
            'include_no_display': self.include_no_display,
            'include_has_software_list': self.include_has_software_list,
            'include_no_software_list': self.include_no_software_list,
            'include_good_driver': self.include_good_driver,
            'include_imperfect_driver': self.include_imperfect_driver,
            'control_types': dict(self.control_types),
            # JSON object keys are always strings
            'button_counts': {str(k): v for k, v in self.button_counts.items()},
            'player_counts': {str(k): v for k, v in self.player_counts.items()},
            'years': dict(self.years),
            'believe_guessed_years': self.believe_guessed_years,
        }

    @classmethod
    def from_dict(cls, d: Dict, catalog: Optional[MameCatalog] = None) -> 'MameSource':
        return cls(
            include_has_display=d.get('include_has_display', True),
            include_no_display=d.get('include_no_display', False),
            include_has_software_list=d.get('include_has_software_list', False),
            include_no_software_list=d.get('include_no_software_list', True),
            include_good_driver=d.get('include_good_driver', True),
            include_imperfect_driver=d.get('include_imperfect_driver', False),
            control_types=dict(d.get('control_types', {})),
            button_counts=_int_keys(d.get('button_counts', {})),
            player_counts=_int_keys(d.get('player_counts', {})),
            years=dict(d.get('years', {})),
            believe_guessed_years=d.get('believe_guessed_years', True),
            catalog=catalog if catalog is not None else MameCatalog(),
        )


SOURCE_TYPES = {
    KIND_FOLDER: FolderSource,
    KIND_NAME_LIST: NameListSource,
    KIND_MAME: MameSource,
}
