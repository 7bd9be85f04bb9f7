import os
import threading
from contextlib import nullcontext
from dataclasses import dataclass, field, asdict
from datetime import timedelta

from flask import has_app_context
from sqlalchemy import event, func, desc
from sqlalchemy.exc import SQLAlchemyError

from models import db, PageView, utcnow

RECENT_LIMIT = 50


@dataclass
class StatsSnapshot:
    totalViews: int = 0
    uniqueVisitors: int = 0
    today: int = 0
    pages: list = field(default_factory=list)
    recent: list = field(default_factory=list)
    daily: list = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


class ViewStore:
    """Page view log backed by a single SQLite file.

    One store per application. SQLite allows many readers and a single
    writer; writers wait up to ``DB_BUSY_TIMEOUT`` seconds for the lock and
    then fail with ``OperationalError`` instead of blocking forever.
    """

    def __init__(self, app=None):
        self.app = None
        self.db_path = None
        self._opened = False
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        if 'view_store' in app.extensions:
            raise RuntimeError('A view store is already registered on this app')

        self.app = app
        self.db_path = os.path.abspath(app.config['DB_PATH'])
        busy_timeout = app.config.get('DB_BUSY_TIMEOUT', 5)

        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{self.db_path}'
        engine_options = app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {})
        engine_options.setdefault('connect_args', {})['timeout'] = busy_timeout

        db.init_app(app)
        with app.app_context():
            event.listen(db.engine, 'connect', self._configure_connection)

        app.extensions['view_store'] = self

    def _configure_connection(self, dbapi_connection, connection_record):
        busy_ms = int(self.app.config.get('DB_BUSY_TIMEOUT', 5) * 1000)
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA journal_mode=WAL')
        cursor.execute(f'PRAGMA busy_timeout = {busy_ms}')
        cursor.close()

    def _context(self):
        if has_app_context():
            return nullcontext()
        return self.app.app_context()

    def open(self):
        """Create the database file and schema if needed. Safe to call repeatedly."""
        with self._lock:
            if self._opened:
                return self

            os.makedirs(os.path.dirname(self.db_path), exist_ok=True)
            with self._context():
                db.create_all()

            self._opened = True
            self.app.logger.info(f"View store ready at {self.db_path}")
            return self

    def record(self, path, referrer='', screen_width=0, user_agent='', visitor_hash=''):
        """Insert one page view. Storage errors propagate to the caller."""
        self.open()

        with self._context():
            page_view = PageView(
                path=path,
                referrer=referrer,
                screen_width=screen_width,
                user_agent=user_agent,
                visitor_hash=visitor_hash,
                ip_hash=visitor_hash
            )

            db.session.add(page_view)
            try:
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise

    def aggregate_stats(self, days, now=None):
        """Summary of the last ``days`` days.

        Each figure is its own read query, so a write landing in between
        may be seen by some of them and not by others.
        """
        self.open()

        now = now or utcnow()
        since = now - timedelta(days=days)
        in_window = PageView.created_at >= since
        view_count = func.count(PageView.id)

        with self._context():
            total_views = db.session.query(view_count).filter(in_window).scalar() or 0

            unique_visitors = db.session.query(
                func.count(func.distinct(PageView.visitor_hash))
            ).filter(
                in_window,
                PageView.visitor_hash != ''
            ).scalar() or 0

            today = db.session.query(view_count).filter(
                func.date(PageView.created_at) == now.date().isoformat()
            ).scalar() or 0

            top_pages = db.session.query(
                PageView.path,
                view_count.label('views')
            ).filter(in_window).group_by(PageView.path).order_by(
                desc('views'), PageView.path
            ).all()

            daily_views_raw = db.session.query(
                func.date(PageView.created_at).label('date'),
                view_count.label('views')
            ).filter(in_window).group_by(
                func.date(PageView.created_at)
            ).order_by('date').all()

            recent_views = PageView.query.order_by(
                desc(PageView.created_at), desc(PageView.id)
            ).limit(RECENT_LIMIT).all()

            recent = [view.to_recent() for view in recent_views]

        daily = []
        for day in daily_views_raw:
            # SQLite hands date() back as a string
            if isinstance(day.date, str):
                date_str = day.date
            else:
                date_str = day.date.isoformat()
            daily.append({'date': date_str, 'views': day.views})

        return StatsSnapshot(
            totalViews=total_views,
            uniqueVisitors=unique_visitors,
            today=today,
            pages=[{'path': page.path, 'views': page.views} for page in top_pages],
            recent=recent,
            daily=daily
        )

    def close(self):
        with self._lock:
            if not self._opened:
                return
            with self._context():
                db.session.remove()
                db.engine.dispose()
            self._opened = False
