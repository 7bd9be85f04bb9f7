from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone

db = SQLAlchemy()


def utcnow():
    """Naive UTC now, matching what SQLite stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PageView(db.Model):
    __tablename__ = 'page_views'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    path = db.Column(db.Text, nullable=False)
    visitor_hash = db.Column(db.Text, default='')
    referrer = db.Column(db.Text, default='')
    screen_width = db.Column(db.Integer, default=0)
    user_agent = db.Column(db.Text, default='')
    # same value as visitor_hash, kept for older databases
    ip_hash = db.Column(db.Text, default='')
    created_at = db.Column(db.DateTime, default=utcnow,
                           server_default=db.func.current_timestamp())

    __table_args__ = (
        db.Index('idx_views_created', 'created_at'),
        db.Index('idx_views_path', 'path'),
    )

    def to_recent(self):
        return {
            'path': self.path,
            'timestamp': self.created_at.isoformat(),
            'screenWidth': self.screen_width or 0,
        }
