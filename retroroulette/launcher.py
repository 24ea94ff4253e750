"""Starts the emulator / program for a chosen game variant."""

import os
import subprocess
from typing import Callable, List, Optional

from .models import Selectable
from .monitor import monitor_action
from .nodes import SelectionTree


class LaunchError(RuntimeError):
    """The game cannot be started."""


def _spawn(command: List[str]) -> subprocess.Popen:
    # Emulators like MAME resolve their data paths relative to the working directory
    cwd = os.path.dirname(command[0]) or None
    return subprocess.Popen(command, cwd=cwd)


class GameLauncher:
    """Turns (Selectable, variant) into a running process via the owning leaf's source."""

    def __init__(self, tree: SelectionTree, spawn: Optional[Callable[[List[str]], object]] = None):
        self.tree = tree
        self.spawn = spawn or _spawn

    def is_playable(self, selectable: Selectable) -> bool:
        leaf = self.tree.owner_of(selectable)
        return leaf is not None and leaf.source is not None and leaf.source.is_playable

    def build_command(self, selectable: Selectable, variant_key: Optional[str] = None) -> List[str]:
        leaf = self.tree.owner_of(selectable)
        if leaf is None or leaf.source is None:
            raise LaunchError(f"'{selectable.name}' does not belong to a category in this tree")
        if not leaf.source.is_playable:
            raise LaunchError(f"No play command configured for '{leaf.name}'")

        key = selectable.default_variant() if variant_key is None else variant_key
        variant = selectable.variant(key) if key is not None else None
        if variant is None:
            raise LaunchError(f"'{selectable.name}' has no variant '{variant_key}'")

        command = leaf.source.build_command(variant)
        if not command or not command[0]:
            raise LaunchError(f"Empty play command for '{leaf.name}'")
        return command

    def play(self, selectable: Selectable, variant_key: Optional[str] = None):
        command = self.build_command(selectable, variant_key)
        monitor_action(f"play: {selectable.name} [{variant_key or selectable.default_variant()}]")
        try:
            return self.spawn(command)
        except OSError as e:
            raise LaunchError(f"Could not start {command[0]}: {e}")
