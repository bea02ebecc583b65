# src/intunegraph/core/graph_client.py
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from intunegraph.config.loader import get_http_config
from intunegraph.core.auth import AuthError, Session
from intunegraph.core.body import DEFAULT_MAX_DEPTH, classify_body, encode_body
from intunegraph.core.clouds import GraphCloud
from intunegraph.core.outcome import Outcome
from intunegraph.http.client import HttpClient
from intunegraph.http.errors import HttpError

log = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


class EndpointNotEstablished(RuntimeError):
    """Relative path requested with no cloud chosen."""


def is_absolute_url(url: str) -> bool:
    u = url.lower()
    return u.startswith("http://") or u.startswith("https://")


def join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def next_link(page: Dict[str, Any]) -> Optional[str]:
    for key, val in page.items():
        if key.endswith("nextLink") and val:
            return val
    return None


class GraphClient:
    """
    Graph request invoker bound to one session (or a bare token provider).
    invoke() returns the aggregated `value` list for collections and the
    decoded object otherwise.
    """
    def __init__(
        self,
        session: Union[Session, Callable[[], str]],
        *,
        base_url: str | None = None,
        allow_default_endpoint: bool = False,
        timeout: float | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        http: HttpClient | None = None,
        logger=None,
    ):
        if isinstance(session, Session):
            self._token_provider = session.token
            base_url = base_url or session.base_url
        else:
            self._token_provider = session
        self.base_url = base_url.rstrip("/") if base_url else None
        self.allow_default_endpoint = allow_default_endpoint
        self.max_depth = max_depth

        if http is None:
            to = float(timeout if timeout is not None else get_http_config().get("timeout_seconds", 30))
            http = HttpClient(timeout=to, logger=logger or log)
        self._http = http

    def _auth_headers(self, content_type: str | None = None) -> Dict[str, str]:
        h = {"Authorization": f"Bearer {self._token_provider()}"}
        if content_type:
            h["Content-Type"] = content_type
        return h

    def resolve(self, path_or_url: str) -> str:
        if is_absolute_url(path_or_url):
            return path_or_url
        base = self.base_url
        if not base:
            if not self.allow_default_endpoint:
                raise EndpointNotEstablished(
                    f"No Graph endpoint for relative path {path_or_url!r}; connect first or pass base_url."
                )
            base = GraphCloud.GLOBAL.base_url
            log.warning("No Graph endpoint established, falling back to %s", base)
        return join_url(base, path_or_url)

    def _fetch(self, method: str, url: str, data: bytes | None, content_type: str | None) -> Any:
        try:
            return self._http.request_json(method, url, headers=self._auth_headers(content_type), data=data)
        except HttpError as err:
            log.error("[GRAPH] %s %s failed: HTTP %s %s", method, url, err.status, err.message)
            raise

    def iter_pages(
        self,
        path_or_url: str,
        *,
        method: str = "GET",
        body: Any = None,
        content_type: str = JSON_CONTENT_TYPE,
        page_limit: int | None = None,
    ) -> Iterable[Any]:
        """Yield decoded pages; continuation pages are bodiless GETs."""
        method = (method or "GET").upper()
        if method not in METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        url = self.resolve(path_or_url)
        data = encode_body(classify_body(body), self.max_depth) if body is not None else None

        page = self._fetch(method, url, data, content_type if data is not None else None)
        pages = 1
        yield page
        while isinstance(page, dict) and isinstance(page.get("value"), list):
            url = next_link(page)
            if not url or (page_limit and pages >= page_limit):
                break
            page = self._fetch("GET", url, None, None)
            pages += 1
            yield page

    def invoke(
        self,
        path_or_url: str,
        method: str = "GET",
        body: Any = None,
        content_type: str = JSON_CONTENT_TYPE,
    ) -> Union[List[Any], Any]:
        items: List[Any] = []
        pages = self.iter_pages(path_or_url, method=method, body=body, content_type=content_type)
        for n, page in enumerate(pages):
            if not (isinstance(page, dict) and isinstance(page.get("value"), list)):
                if n == 0:
                    return page
                # only the first page decides the shape
                log.warning("[GRAPH] continuation page %d of %s has no 'value', stopping", n + 1, path_or_url)
                break
            items.extend(page["value"])
        return items

    def try_invoke(self, path_or_url: str, method: str = "GET", body: Any = None,
                   content_type: str = JSON_CONTENT_TYPE) -> Outcome[Any]:
        try:
            return Outcome.success(self.invoke(path_or_url, method, body, content_type))
        except (HttpError, AuthError) as err:
            return Outcome.failure(err)

    def iter_values(self, path_or_url: str, *, page_limit: int | None = None) -> Iterable[Any]:
        for page in self.iter_pages(path_or_url, page_limit=page_limit):
            for item in page.get("value", []) if isinstance(page, dict) else []:
                yield item

    # ---------- Convenience helpers ----------
    def get(self, path_or_url: str) -> Any:
        return self.invoke(path_or_url, "GET")

    def post(self, path_or_url: str, body: Any = None, content_type: str = JSON_CONTENT_TYPE) -> Any:
        return self.invoke(path_or_url, "POST", body, content_type)

    def patch(self, path_or_url: str, body: Any = None, content_type: str = JSON_CONTENT_TYPE) -> Any:
        return self.invoke(path_or_url, "PATCH", body, content_type)

    def put(self, path_or_url: str, body: Any = None, content_type: str = JSON_CONTENT_TYPE) -> Any:
        return self.invoke(path_or_url, "PUT", body, content_type)

    def delete(self, path_or_url: str) -> Any:
        return self.invoke(path_or_url, "DELETE")
