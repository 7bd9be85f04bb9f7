import logging
import threading
import time
from collections import namedtuple

import requests

logger = logging.getLogger(__name__)

ReportResult = namedtuple('ReportResult', ['ok', 'error'])


class ViewReporter:
    """Fire-and-forget page view reporting to ``POST /api/track``.

    ``report`` never raises and never blocks on the network. Each send runs
    on its own non-daemon thread so it is still attempted while the
    interpreter shuts down. Send failures come back as a ``ReportResult``
    that ``report`` drops on purpose.
    """

    def __init__(self, endpoint, session=None, timeout=2):
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout
        self.last_path = None
        self._threads = []
        self._lock = threading.Lock()

    def report(self, path, referrer='', screen_width=0):
        with self._lock:
            if path == self.last_path:
                return
            self.last_path = path

        payload = {
            'path': path,
            'referrer': referrer,
            'screenWidth': screen_width,
            'timestamp': int(time.time() * 1000)
        }

        try:
            self._dispatch(payload)
        except Exception as e:
            logger.debug(f"Could not dispatch view report: {e}")

    def _dispatch(self, payload):
        thread = threading.Thread(target=self.send, args=(payload,),
                                  name='view-reporter', daemon=False)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    def send(self, payload):
        try:
            response = self.session.post(self.endpoint, json=payload,
                                         timeout=self.timeout)
            response.raise_for_status()
            return ReportResult(True, None)
        except Exception as e:
            logger.debug(f"View report failed: {e}")
            return ReportResult(False, e)

    def join(self, timeout=None):
        """Wait for in-flight reports."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
