import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _int_env(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-key-change-in-production')

    # Analytics store
    DB_PATH = os.getenv('DB_PATH', str(Path.cwd() / 'data' / 'analytics.db'))
    DB_BUSY_TIMEOUT = _int_env('DB_BUSY_TIMEOUT', 5)

    # Stats endpoint secret, override for any real deployment
    STATS_PASSWORD = os.getenv('STATS_PASSWORD', 'admin')

    PORT = _int_env('PORT', 3000)

    # analytics payloads are small
    MAX_CONTENT_LENGTH = 1024


class TestingConfig(Config):
    TESTING = True
    STATS_PASSWORD = 'test-secret'
