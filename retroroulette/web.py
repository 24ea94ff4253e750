"""
Web API for RetroRoulette using Flask + a small embedded page.
Browse the category tree, change weights, spin and launch games.
"""

from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, render_template_string

from .config import AppConfig, load_config, save_config
from .launcher import GameLauncher, LaunchError
from .models import NameFilter, Selectable
from .monitor import monitor_action, setup_runtime_monitor
from .nodes import (
    LeafCategory, SelectionTree, TreeEditError, filtered_selectables,
    node_summary, reset_all, set_enabled, set_weight,
)
from .population import PopulationManager
from .reels import SlotMachine
from .settings import DEFAULT_SETTINGS, clamp_reel_count, reel_settings

# Flask app
app = Flask(__name__)

# Global state
state: Dict[str, Any] = {
    'config': AppConfig(),
    'config_path': None,
    'tree': SelectionTree(),
    'manager': PopulationManager(),
    'settings': DEFAULT_SETTINGS,
}


def configure(config: AppConfig, config_path: Optional[str] = None,
              settings: Optional[Dict[str, Any]] = None,
              manager: Optional[PopulationManager] = None,
              refresh: bool = True) -> Dict[str, Any]:
    """Install a configuration into the app state and start populating its leaves."""
    state['config'] = config
    state['config_path'] = config_path
    state['tree'] = config.build_tree()
    state['manager'] = manager or PopulationManager()
    state['settings'] = settings or DEFAULT_SETTINGS
    if refresh:
        _start_refresh()
    return state


def _filter() -> NameFilter:
    if request.method == 'GET':
        return NameFilter(request.args.get('filter', ''))
    return NameFilter(str(_json_body().get('filter') or ''))


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _save():
    if state['config_path']:
        save_config(state['config'], state['config_path'])


def _start_refresh():
    state['manager'].refresh_all(state['tree'].root)


@app.before_request
def _install_finished():
    # Single-threaded server: finished lists land on the thread that edits the tree
    state['manager'].poll()


def _find_game(tree: SelectionTree, owner_id: str, name: str) -> Optional[Selectable]:
    leaf = tree.find(owner_id)
    if not isinstance(leaf, LeafCategory):
        return None
    for game in leaf.selectables:
        if game.name == name:
            return game
    return None


@app.route('/')
def index():
    return render_template_string(HTML_TEMPLATE)


@app.route('/api/status')
def get_status():
    tree: SelectionTree = state['tree']
    manager: PopulationManager = state['manager']
    leaves = tree.leaves()
    return jsonify({
        'node_count': sum(1 for _ in tree.walk()),
        'leaf_count': len(leaves),
        'game_count': sum(len(leaf.selectables) for leaf in leaves),
        'refreshing': bool(manager.tasks),
        'leaf_status': manager.last_status,
        'leaf_errors': {k: v for k, v in manager.last_error.items() if v},
    })


@app.route('/api/tree')
def get_tree():
    tree: SelectionTree = state['tree']
    return jsonify(node_summary(tree.root, tree.root, _filter()))


@app.route('/api/browse')
def browse():
    tree: SelectionTree = state['tree']
    limit = request.args.get('limit', type=int) or state['settings']['browser'].get('max_results', 100)
    games = filtered_selectables(tree.root, _filter(), enabled_only=False)
    results = []
    for game in games[:limit]:
        owner = tree.owner_of(game)
        data = game.to_dict()
        data['category'] = owner.name if owner else ''
        data['playable'] = bool(owner and owner.source and owner.source.is_playable)
        results.append(data)
    return jsonify({'total': len(games), 'results': results})


# ── Spin ───────────────────────────────────────────────────────

@app.route('/api/spin', methods=['POST'])
def spin():
    data = _json_body()
    reels = reel_settings(state['settings'])
    try:
        count = clamp_reel_count(data.get('count') or reels['count'])
    except (TypeError, ValueError, OverflowError):
        return jsonify({'error': f"Invalid reel count: {data.get('count')!r}"}), 400
    machine = SlotMachine(state['tree'].root, count, reels['spin_tick_seconds'])
    machine.spin(_filter())
    results = machine.stop_all()
    monitor_action(f"web spin: {len(results)} reels")
    return jsonify({
        'reels': [reel.to_dict() for reel in results],
        'empty': not any(reel.game for reel in results),
    })


@app.route('/api/play', methods=['POST'])
def play():
    data = _json_body()
    tree: SelectionTree = state['tree']
    game = _find_game(tree, data.get('owner_id', ''), data.get('name', ''))
    if game is None:
        return jsonify({'error': 'Game not found'}), 404
    try:
        GameLauncher(tree).play(game, data.get('variant'))
    except LaunchError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'success': True})


# ── Tree edits ─────────────────────────────────────────────────

def _node_or_404(node_id):
    node = state['tree'].find(node_id or '')
    if node is None:
        return None, (jsonify({'error': f'Unknown node id: {node_id}'}), 404)
    return node, None


@app.route('/api/node/enabled', methods=['POST'])
def node_enabled():
    data = _json_body()
    node, err = _node_or_404(data.get('id'))
    if err:
        return err
    set_enabled(node, bool(data.get('enabled', True)))
    _save()
    return jsonify({'success': True})


@app.route('/api/node/weight', methods=['POST'])
def node_weight():
    data = _json_body()
    node, err = _node_or_404(data.get('id'))
    if err:
        return err
    try:
        set_weight(node, float(data.get('weight')))
    except (TypeError, ValueError) as e:
        # WeightError is a ValueError
        return jsonify({'error': str(e)}), 400
    _save()
    return jsonify({'success': True})


@app.route('/api/node/reset', methods=['POST'])
def node_reset():
    data = _json_body()
    tree: SelectionTree = state['tree']
    node = tree.root
    if data.get('id'):
        node, err = _node_or_404(data['id'])
        if err:
            return err
    reset_all(node)
    _save()
    return jsonify({'success': True})


@app.route('/api/node/move', methods=['POST'])
def node_move():
    data = _json_body()
    tree: SelectionTree = state['tree']
    try:
        direction = data.get('direction')
        if direction == 'up':
            moved = tree.move_up(data.get('id', ''))
        elif direction == 'down':
            moved = tree.move_down(data.get('id', ''))
        else:
            tree.move_node(data.get('id', ''), data.get('parent_id') or tree.root.node_id, data.get('index'))
            moved = True
    except TreeEditError as e:
        return jsonify({'error': str(e)}), 400
    _save()
    return jsonify({'success': True, 'moved': moved})


@app.route('/api/node/delete', methods=['POST'])
def node_delete():
    data = _json_body()
    try:
        state['tree'].delete_node(data.get('id', ''))
    except TreeEditError as e:
        return jsonify({'error': str(e)}), 400
    _save()
    return jsonify({'success': True})


@app.route('/api/refresh', methods=['POST'])
def refresh():
    if state['manager'].tasks:
        return jsonify({'error': 'Refresh already in progress'}), 400
    _start_refresh()
    return jsonify({'success': True, 'message': 'Refresh started'})




HTML_TEMPLATE = r'''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>RetroRoulette</title>
    <style>
        body { font-family: sans-serif; background: #0f172a; color: #e2e8f0; margin: 24px; }
        .reels { display: flex; gap: 12px; margin: 16px 0; }
        .reel { background: #1e293b; border: 1px solid #475569; border-radius: 8px; padding: 12px; min-width: 180px; }
        .off { opacity: 0.4; }
        ul { list-style: none; padding-left: 18px; }
        button { cursor: pointer; }
    </style>
</head>
<body>
    <h1>RetroRoulette</h1>
    <input id="filter" placeholder="Filter by name">
    <button onclick="spin()">Spin</button>
    <div class="reels" id="reels"></div>
    <div id="tree"></div>
    <script>
    {% raw %}
        const api = {
            async get(url) { const r = await fetch(url); return r.json(); },
            async post(url, data) {
                const r = await fetch(url, { method: 'POST', headers: { 'Content-Type': 'application/json' }, body: JSON.stringify(data) });
                return r.json();
            },
        };
        const filterText = () => document.getElementById('filter').value;
        const esc = (s) => String(s ?? '').replace(/[&<>"']/g,
            c => ({ '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;' })[c]);

        function renderNode(n) {
            const kids = (n.children || []).map(renderNode).join('');
            return `<li class="${n.enabled ? '' : 'off'}">
                <input type="checkbox" ${n.enabled ? 'checked' : ''} data-id="${esc(n.id)}" onchange="toggle(this.dataset.id, this.checked)">
                ${esc(n.name)} &middot; ${n.game_count} games &middot; ${(100 * n.fraction).toFixed(1)}%
                <input size="5" value="${esc(n.weight)}" data-id="${esc(n.id)}" onchange="reweight(this.dataset.id, this.value)">
                ${kids ? `<ul>${kids}</ul>` : ''}</li>`;
        }
        async function loadTree() {
            const t = await api.get('/api/tree?filter=' + encodeURIComponent(filterText()));
            document.getElementById('tree').innerHTML = `<ul>${renderNode(t)}</ul>`;
        }
        async function toggle(id, enabled) { await api.post('/api/node/enabled', { id, enabled }); loadTree(); }
        async function reweight(id, weight) {
            const r = await api.post('/api/node/weight', { id, weight: parseFloat(weight) });
            if (r.error) alert(r.error);
            loadTree();
        }
        async function play(owner_id, name, variant) {
            const r = await api.post('/api/play', { owner_id, name, variant });
            if (r.error) alert(r.error);
        }
        async function spin() {
            const r = await api.post('/api/spin', { filter: filterText() });
            if (r.error) { alert(r.error); return; }
            document.getElementById('reels').innerHTML = r.reels.map(reel => reel.game
                ? `<div class="reel"><b>${esc(reel.game.name)}</b><br>${esc(reel.variant)}<br>
                   <button data-owner="${esc(reel.game.owner_id)}" data-name="${esc(reel.game.name)}"
                       ${reel.variant == null ? '' : `data-variant="${esc(reel.variant)}"`}
                       onclick="play(this.dataset.owner, this.dataset.name, this.dataset.variant ?? null)">Play</button></div>`
                : '<div class="reel off">(nothing)</div>').join('');
        }
        document.getElementById('filter').addEventListener('input', loadTree);
        loadTree();
    {% endraw %}
    </script>
</body>
</html>
'''


def run_server(host='127.0.0.1', port=5000, debug=False, config_path=None, settings=None):
    """Run the web server"""
    logger = setup_runtime_monitor()
    monitor_action(f"run_server called: host={host} port={port} debug={debug}", logger=logger)
    if config_path:
        configure(load_config(config_path), config_path, settings)
    print("RetroRoulette - Web Interface")
    print("=" * 50)
    print(f"Open in your browser: http://{host}:{port}")
    print("Press Ctrl+C to stop")
    print()
    app.run(host=host, port=port, debug=debug, threaded=False)
