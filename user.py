import hmac
from flask_login import UserMixin


class StatsUser(UserMixin):
    def __init__(self, username='stats'):
        self.id = username
        self.username = username

    @staticmethod
    def from_authorization(header, password):
        """Return a StatsUser when header is ``Bearer <password>``."""
        if not header or not password:
            return None

        expected = f'Bearer {password}'
        if hmac.compare_digest(header.encode('utf-8'), expected.encode('utf-8')):
            return StatsUser()
        return None
