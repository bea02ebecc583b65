from __future__ import annotations
import json as _json
from typing import Any, Dict, Optional
import requests

from intunegraph.http.errors import NetworkError, error_for_status


class HttpClient:
    """
    Single-shot HTTP transport. One call, one request: retries live in
    intunegraph.http.throttle and are layered on by callers.
    """
    def __init__(self, timeout: float = 30.0, logger=None, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._session = session or requests.Session()
        self._log = logger  # optional, expects .debug()

    def _log_debug(self, msg: str) -> None:
        if self._log:
            self._log.debug(msg)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
    ) -> requests.Response:
        method = method.upper()
        try:
            self._log_debug(f"HTTP {method} {url}")
            resp = self._session.request(
                method=method,
                url=url,
                headers=headers or {},
                data=data,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as ex:
            raise NetworkError(-1, url, str(ex)) from ex

        if resp.status_code < 400:
            self._log_debug(f"HTTP {resp.status_code} {url}")
            return resp

        err = error_for_status(resp.status_code, url, _safe_text(resp))
        err.retry_after = (resp.headers or {}).get("Retry-After")
        raise err

    def request_json(self, method: str, url: str, **kwargs) -> Any:
        r = self.request(method, url, **kwargs)
        return decode_json(r)


def decode_json(resp: requests.Response) -> Any:
    text = _safe_text(resp)
    if not text.strip():
        return {}
    try:
        return _json.loads(text)
    except ValueError:
        # non-JSON success bodies (e.g. raw exports) come back as text
        return text


def _safe_text(resp: requests.Response) -> str:
    try:
        return resp.text or ""
    except (AttributeError, UnicodeDecodeError):
        return ""
