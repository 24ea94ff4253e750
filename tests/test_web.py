import time
import unittest

from retroroulette.config import AppConfig
from retroroulette.nodes import GroupCategory, LeafCategory
from retroroulette.sources import NameListSource
from retroroulette.web import app, configure, state


def _leaf(name, games):
    leaf = LeafCategory(name=name, source=NameListSource(names=games))
    leaf.install(leaf.source.build_selectables(leaf.source.refresh(), leaf.node_id))
    return leaf


class WebApiTests(unittest.TestCase):
    def setUp(self):
        self.board = _leaf('Board', ['Chess', 'Go'])
        self.cards = _leaf('Cards', ['Poker'])
        root = GroupCategory(name='All', children=[self.board, self.cards])
        configure(AppConfig(root=root), refresh=False)
        self.client = app.test_client()

    def test_status_counts_games(self):
        payload = self.client.get('/api/status').get_json()
        self.assertEqual(payload['leaf_count'], 2)
        self.assertEqual(payload['game_count'], 3)
        self.assertFalse(payload['refreshing'])

    def test_tree_applies_filter(self):
        payload = self.client.get('/api/tree?filter=poker').get_json()
        board, cards = payload['children']
        self.assertEqual(board['fraction'], 0)
        self.assertEqual(cards['fraction'], 1)
        self.assertEqual(cards['game_count'], 1)

    def test_browse_lists_matching_games(self):
        payload = self.client.get('/api/browse?filter=o').get_json()
        self.assertEqual(payload['total'], 2)
        names = [g['name'] for g in payload['results']]
        self.assertEqual(names, ['Go', 'Poker'])
        self.assertEqual(payload['results'][1]['category'], 'Cards')
        self.assertFalse(payload['results'][1]['playable'])

    def test_spin_respects_filter_and_enabled(self):
        payload = self.client.post('/api/spin', json={'count': 2, 'filter': 'chess'}).get_json()
        self.assertEqual([r['game']['name'] for r in payload['reels']], ['Chess', 'Chess'])

        self.client.post('/api/node/enabled', json={'id': self.cards.node_id, 'enabled': False})
        payload = self.client.post('/api/spin', json={'filter': 'poker'}).get_json()
        self.assertTrue(payload['empty'])

    def test_spin_accepts_null_json_body(self):
        resp = self.client.post('/api/spin', data='null', content_type='application/json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.get_json()['reels']), 3)

    def test_set_weight(self):
        resp = self.client.post('/api/node/weight', json={'id': self.board.node_id, 'weight': 10})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.board.weight, 10)

        resp = self.client.post('/api/node/weight', json={'id': self.board.node_id, 'weight': -1})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('error', resp.get_json())
        self.assertEqual(self.board.weight, 10)

    def test_unknown_node_is_404(self):
        resp = self.client.post('/api/node/enabled', json={'id': 'nope', 'enabled': False})
        self.assertEqual(resp.status_code, 404)

    def test_reset_restores_counts(self):
        self.client.post('/api/node/weight', json={'id': state['tree'].root.node_id, 'weight': 30})
        self.client.post('/api/node/reset', json={})
        self.assertEqual(self.board.weight, 2)
        self.assertEqual(self.cards.weight, 1)

    def test_tree_edits(self):
        resp = self.client.post('/api/node/move', json={'id': self.cards.node_id, 'direction': 'up'})
        self.assertTrue(resp.get_json()['moved'])
        self.assertIs(state['tree'].root.children[0], self.cards)

        resp = self.client.post('/api/node/delete', json={'id': state['tree'].root.node_id})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post('/api/node/delete', json={'id': self.board.node_id})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(state['tree'].root.children, [self.cards])

    def test_move_with_non_integer_index_is_rejected(self):
        resp = self.client.post('/api/node/move', json={
            'id': self.board.node_id, 'parent_id': state['tree'].root.node_id, 'index': '0'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('error', resp.get_json())

        payload = self.client.get('/api/status').get_json()
        self.assertEqual(payload['game_count'], 3)
        self.assertEqual(state['tree'].root.children, [self.board, self.cards])

    def test_spin_count_is_validated_and_clamped(self):
        resp = self.client.post('/api/spin', json={'count': 'abc'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('error', resp.get_json())

        payload = self.client.post('/api/spin', json={'count': 1000000}).get_json()
        self.assertEqual(len(payload['reels']), 10)

    def test_page_escapes_names(self):
        page = self.client.get('/').get_data(as_text=True)
        self.assertIn('esc(n.name)', page)
        self.assertIn('esc(reel.game.name)', page)
        self.assertNotIn('${n.name}', page)

    def test_play_errors(self):
        resp = self.client.post('/api/play', json={'owner_id': self.board.node_id, 'name': 'Checkers'})
        self.assertEqual(resp.status_code, 404)

        resp = self.client.post('/api/play', json={'owner_id': self.board.node_id, 'name': 'Chess'})
        self.assertEqual(resp.status_code, 400)

    def test_refresh_runs_in_background(self):
        resp = self.client.post('/api/refresh')
        self.assertEqual(resp.status_code, 200)

        deadline = time.time() + 5
        payload = self.client.get('/api/status').get_json()
        while payload['refreshing'] and time.time() < deadline:
            time.sleep(0.05)
            payload = self.client.get('/api/status').get_json()
        self.assertFalse(payload['refreshing'])
        self.assertEqual(payload['leaf_status'][self.board.node_id], 'ok')
        self.assertEqual(payload['game_count'], 3)

    def test_finished_refresh_is_installed_by_the_next_request(self):
        self.cards.source.names.append('Bridge')
        self.client.post('/api/refresh')
        for task in list(state['manager'].tasks):
            task.wait(5)

        self.assertEqual([g.name for g in self.cards.selectables], ['Poker'])
        payload = self.client.get('/api/status').get_json()
        self.assertEqual(payload['game_count'], 4)
        self.assertEqual([g.name for g in self.cards.selectables], ['Poker', 'Bridge'])


if __name__ == '__main__':
    unittest.main()
