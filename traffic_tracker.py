import hashlib
import math
from datetime import datetime, timezone

MAX_FIELD_LENGTH = 500
MAX_SCREEN_WIDTH = 2 ** 31 - 1


class PayloadError(ValueError):
    """Raised when a view report is missing a usable path."""


def hash_visitor(address, day=None):
    """Daily-rotating visitor id: first 16 hex chars of sha256(address + YYYY-MM-DD).

    ``day`` defaults to the current UTC date, so the same address maps to a
    new value every day.
    """
    if day is None:
        day = datetime.now(timezone.utc).date()
    raw = f"{address or ''}{day.isoformat()}"
    return hashlib.sha256(raw.encode('utf-8', 'replace')).hexdigest()[:16]


def get_real_ip(headers, remote_addr=None):
    forwarded = headers.get('X-Forwarded-For')
    if forwarded:
        first = forwarded.split(',')[0].strip()
        if first:
            return first
    return remote_addr or ''


def truncate(value, length=MAX_FIELD_LENGTH):
    if not isinstance(value, str):
        return ''
    return value[:length]


def coerce_screen_width(value):
    # bool is an int subclass but not a width
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number < 0 or number > MAX_SCREEN_WIDTH:
        return 0
    return int(number)


class TrafficTracker:
    def __init__(self, store=None):
        self.store = store

    def normalize(self, payload, headers, remote_addr=None, day=None):
        if not isinstance(payload, dict):
            raise PayloadError('path required')

        path = payload.get('path')
        if not path or not isinstance(path, str):
            raise PayloadError('path required')

        return {
            'path': truncate(path),
            'referrer': truncate(payload.get('referrer')),
            'screen_width': coerce_screen_width(payload.get('screenWidth')),
            'user_agent': truncate(headers.get('User-Agent', '')),
            'visitor_hash': hash_visitor(get_real_ip(headers, remote_addr), day)
        }

    def track(self, payload, headers, remote_addr=None):
        """Validate one view report and store it. Returns the stored fields."""
        page_view = self.normalize(payload, headers, remote_addr)
        self.store.record(**page_view)
        return page_view
