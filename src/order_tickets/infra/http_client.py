"""Thin JSON-over-HTTP client used by the chat gateway."""

import logging
import threading

import requests

logger = logging.getLogger(__name__)


class HttpClient:
    """JSON POST client backed by a small pool of ``requests.Session`` objects.

    A session is never used by two threads at once: each call borrows an idle
    session (opening a new one when none is free) and returns it afterwards,
    so the pool grows only to the peak number of concurrent calls.

    Failed calls are never retried; a failure surfaces to the caller as
    ``RuntimeError`` on the first attempt.
    """

    def __init__(self, timeout: float = 30):
        self.timeout = timeout
        self._lock = threading.Lock()
        self._idle: list[requests.Session] = []
        self._sessions: list[requests.Session] = []

    def post(self, url: str, payload: dict | None = None) -> dict:
        """POST ``payload`` as JSON and return the decoded JSON body.

        Error statuses that still carry a JSON body are returned as-is so the
        caller can read the service's own error description.
        """
        session = self._acquire()
        try:
            resp = session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise RuntimeError(f"Request failed: {exc}") from exc
        finally:
            self._release(session)

        try:
            return resp.json()
        except ValueError as exc:
            raise RuntimeError(f"HTTP {resp.status_code}: {resp.text}") from exc

    @property
    def pool_size(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close(self):
        """Close every pooled HTTP session."""
        with self._lock:
            sessions, self._sessions, self._idle = self._sessions, [], []
        for session in sessions:
            session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ------------------------------------------------------------------ #
    #  Session pool                                                        #
    # ------------------------------------------------------------------ #

    def _acquire(self) -> requests.Session:
        with self._lock:
            if self._idle:
                return self._idle.pop()
            session = requests.Session()
            session.headers.update({"Accept": "application/json"})
            self._sessions.append(session)
            logger.debug("Opened HTTP session #%d", len(self._sessions))
            return session

    def _release(self, session: requests.Session) -> None:
        with self._lock:
            # A session closed by close() mid-call is dropped.
            if session in self._sessions:
                self._idle.append(session)
