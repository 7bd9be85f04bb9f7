import pytest

from app import create_app
from config import TestingConfig
from models import db, PageView, utcnow


@pytest.fixture
def app(tmp_path):
    app = create_app(TestingConfig, {'DB_PATH': str(tmp_path / 'data' / 'analytics.db')})
    yield app
    app.extensions['view_store'].close()


@pytest.fixture
def store(app):
    return app.extensions['view_store'].open()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    return {'Authorization': f"Bearer {app.config['STATS_PASSWORD']}"}


@pytest.fixture
def add_view(app, store):
    """Insert a page view with an explicit timestamp."""
    def _add_view(path, created_at=None, visitor_hash='', screen_width=0):
        with app.app_context():
            db.session.add(PageView(
                path=path,
                created_at=created_at or utcnow(),
                visitor_hash=visitor_hash,
                ip_hash=visitor_hash,
                screen_width=screen_width
            ))
            db.session.commit()
    return _add_view
