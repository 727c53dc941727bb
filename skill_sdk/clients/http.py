# =============================================================================
# HTTP Client
# =============================================================================
# Thin requests wrapper handed to handlers as ctx.http. The session is
# created on first use.
# =============================================================================

import os
from typing import Any, Dict

import requests


class HttpClient:
    """HTTP client bound to one invocation."""

    def __init__(self, timeout: int = None, headers: Dict[str, str] = None):
        self.timeout = timeout or int(os.environ.get("SKILL_HTTP_TIMEOUT", "60"))
        self.headers = headers or {}
        self._session = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(self.headers)
        return self._session

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        return self.session.request(method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
