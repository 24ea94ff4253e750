"""
Shared configuration between the CLI and the web interface.
App-local paths and display constants.
"""

import os

# App data directory
APP_DATA_DIR = os.path.expanduser('~/.retroroulette')
LOGS_DIR = os.path.join(APP_DATA_DIR, 'logs')
CONFIG_FILE = os.path.join(APP_DATA_DIR, 'rr_config.json')
SETTINGS_FILE = os.path.join(APP_DATA_DIR, 'settings.json')

# Node type labels as shown to the user
NODE_TYPE_LABELS = {
    'Group': 'Group',
    'FileFolder': 'ROM folder',
    'NameList': 'Name list',
    'MAME': 'MAME',
}

MIN_REEL_COUNT = 1
MAX_REEL_COUNT = 10


def ensure_app_directories() -> None:
    """Create required app-local directories at startup."""
    for path in (APP_DATA_DIR, LOGS_DIR):
        os.makedirs(path, exist_ok=True)
