"""
Command-line interface for RetroRoulette
"""

import argparse
import random
import sys

from . import __version__
from .config import load_config, save_config
from .launcher import GameLauncher, LaunchError
from .models import NameFilter
from .monitor import monitor_action, setup_runtime_monitor
from .nodes import (
    TreeEditError, WeightError, filtered_selectables, node_summary,
    reset_all, set_enabled, set_weight,
)
from .population import STATUS_ERROR, PopulationManager
from .reels import SlotMachine
from .settings import DEFAULT_SETTINGS_PATH, load_settings, reel_settings
from .shared_config import NODE_TYPE_LABELS, ensure_app_directories
from .utils import format_percent, pluralize, truncate_string


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog='retroroulette',
        description='RetroRoulette - pick something to play from your game collection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  %(prog)s --tree
  %(prog)s --spin 3
  %(prog)s --filter mario --list
  %(prog)s --spin 1 --play
  %(prog)s --set-weight 3f2a9c1d 50
  %(prog)s --web --port 5000
        '''
    )

    parser.add_argument('--config', '-c', type=str, help='Category tree file (default from settings)')
    parser.add_argument('--settings', type=str, default=DEFAULT_SETTINGS_PATH, help='Settings file')
    parser.add_argument('--filter', '-f', type=str, default='', help='Only consider games whose name contains this text')
    parser.add_argument('--monitor', action='store_true', help='Echo log output to the terminal')

    view_group = parser.add_argument_group('Browse')
    view_group.add_argument('--tree', action='store_true', help='Show categories with weights and odds')
    view_group.add_argument('--list', action='store_true', help='List matching games and their variants')

    spin_group = parser.add_argument_group('Spin')
    spin_group.add_argument('--spin', type=int, nargs='?', const=0, metavar='N',
                            help='Draw N random games (default: reel count from settings)')
    spin_group.add_argument('--seed', type=int, help='Random seed for reproducible draws')
    spin_group.add_argument('--play', action='store_true', help='Launch the first drawn game (default variant)')

    edit_group = parser.add_argument_group('Edit')
    edit_group.add_argument('--set-weight', nargs=2, metavar=('NODE_ID', 'WEIGHT'), help='Set a category weight')
    edit_group.add_argument('--enable', metavar='NODE_ID', help='Enable a category (and everything under it)')
    edit_group.add_argument('--disable', metavar='NODE_ID', help='Disable a category (and everything under it)')
    edit_group.add_argument('--reset', action='store_true', help='Enable everything and reset weights to game counts')
    edit_group.add_argument('--refresh-mame', action='store_true', help='Re-read the machine list from MAME')

    web_group = parser.add_argument_group('Web')
    web_group.add_argument('--web', action='store_true', help='Start the web interface')
    web_group.add_argument('--host', type=str, help='Web host')
    web_group.add_argument('--port', type=int, help='Web port')

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser


def _print_tree(summary, depth=0):
    kind = NODE_TYPE_LABELS.get(summary['kind'], summary['kind'])
    flag = 'x' if summary['enabled'] else ' '
    print(f"{'  ' * depth}[{flag}] {summary['name'] or '(unnamed)'} <{kind}> "
          f"id={summary['id']} weight={summary['weight']:g} "
          f"{format_percent(summary['fraction'])} ({pluralize(summary['game_count'], 'game')})")
    for child in summary.get('children', []):
        _print_tree(child, depth + 1)


def run_cli(args=None):
    """Run the CLI"""
    parser = create_parser()
    args = parser.parse_args(args)

    ensure_app_directories()
    settings = load_settings(args.settings)
    setup_runtime_monitor(heartbeat_seconds=settings['monitor'].get('heartbeat_seconds', 0),
                          echo=args.monitor or settings['monitor'].get('echo', False))
    monitor_action('cli start')

    config_path = args.config or settings['config_path']

    if args.web:
        from .web import run_server
        run_server(args.host or settings['web']['host'], args.port or settings['web']['port'],
                   config_path=config_path, settings=settings)
        return 0

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        print(f"Error: Failed to load config: {e}", file=sys.stderr)
        return 1
    tree = config.build_tree()
    name_filter = NameFilter(args.filter)
    manager = PopulationManager()
    dirty = False

    if args.refresh_mame:
        print("Reading machine list from MAME...")
        manager.refresh_catalog(config.mame_catalog)
        for task in manager.wait_all():
            if task.status == STATUS_ERROR:
                print(f"Error: {task.error}", file=sys.stderr)
                return 1
        print(f"   {pluralize(len(config.mame_catalog.systems), 'machine')} available")
        dirty = True

    manager.refresh_all(tree.root)
    for task in manager.wait_all():
        if task.status == STATUS_ERROR:
            print(f"Warning: {task.label}: {task.error}", file=sys.stderr)

    try:
        if args.reset:
            reset_all(tree.root)
            dirty = True
        if args.enable:
            set_enabled(tree.get(args.enable), True)
            dirty = True
        if args.disable:
            set_enabled(tree.get(args.disable), False)
            dirty = True
        if args.set_weight:
            node_id, value = args.set_weight
            set_weight(tree.get(node_id), float(value))
            dirty = True
    except (TreeEditError, WeightError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if dirty:
        save_config(config, config_path)

    if args.tree:
        _print_tree(node_summary(tree.root, tree.root, name_filter))

    if args.list:
        games = filtered_selectables(tree.root, name_filter)
        limit = settings['browser'].get('max_results', 100)
        for game in games[:limit]:
            owner = tree.owner_of(game)
            print(f"{truncate_string(game.name, 60):<60}  {owner.name if owner else ''}")
            for key in game.variant_keys():
                marker = '*' if key == game.default_variant() else ' '
                print(f"    {marker} {key or '(default)'}")
        if len(games) > limit:
            print(f"... and {len(games) - limit} more")

    if args.spin is not None:
        rng = random.Random(args.seed) if args.seed is not None else None
        reels = reel_settings(settings)
        machine = SlotMachine(tree.root, args.spin or reels['count'], rng=rng)
        machine.spin(name_filter)
        results = machine.stop_all()
        if not any(reel.game for reel in results):
            print("Nothing to pick: every category is disabled or filtered out.")
            return 0
        for i, reel in enumerate(results, start=1):
            if reel.game is None:
                print(f"{i}. (nothing)")
                continue
            owner = tree.owner_of(reel.game)
            variant = f" [{reel.variant}]" if reel.variant else ""
            print(f"{i}. {reel.game.name}{variant}  ({owner.name if owner else ''})")

        if args.play:
            first = next(reel for reel in results if reel.game)
            try:
                GameLauncher(tree).play(first.game, first.variant)
            except LaunchError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1

    if not (args.tree or args.list or args.spin is not None or dirty):
        parser.print_help()
    return 0


def main():
    """Entry point"""
    sys.exit(run_cli())


if __name__ == '__main__':
    main()
