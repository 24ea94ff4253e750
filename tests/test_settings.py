import json

from retroroulette.settings import (
    DEFAULT_SETTINGS, clamp_reel_count, load_settings, reel_settings, save_settings,
)


def test_missing_settings_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / 'settings.json'))
    assert settings == DEFAULT_SETTINGS
    assert settings is not DEFAULT_SETTINGS


def test_saved_values_merge_over_defaults(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'reels': {'count': 5}, 'web': {'port': 8080}}), encoding='utf-8')

    settings = load_settings(str(path))

    assert settings['reels']['count'] == 5
    assert settings['reels']['spin_tick_seconds'] == DEFAULT_SETTINGS['reels']['spin_tick_seconds']
    assert settings['web'] == {'host': '127.0.0.1', 'port': 8080}


def test_unreadable_settings_fall_back_to_defaults(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text('[1, 2', encoding='utf-8')
    assert load_settings(str(path)) == DEFAULT_SETTINGS


def test_save_then_load(tmp_path):
    path = str(tmp_path / 'nested' / 'settings.json')
    settings = load_settings(path)
    settings['browser']['max_results'] = 10

    save_settings(settings, path)

    assert load_settings(path)['browser']['max_results'] == 10


def test_reel_count_is_clamped():
    assert clamp_reel_count(0) == 1
    assert clamp_reel_count(50) == 10
    assert reel_settings({'reels': {'count': '4'}}) == {'count': 4, 'spin_tick_seconds': 0.04}
