from __future__ import annotations
import json


class HttpError(Exception):
    def __init__(self, status: int, url: str, message: str = "", body_snippet: str = "",
                 graph_code: str = ""):
        super().__init__(message or f"HTTP {status} for {url}")
        self.status = status
        self.url = url
        self.message = message or f"HTTP {status}"
        self.body_snippet = body_snippet
        self.graph_code = graph_code
        self.retry_after: str | None = None

    def __str__(self) -> str:
        code = f" ({self.graph_code})" if self.graph_code else ""
        return f"HTTP {self.status}{code} {self.message} [{self.url}]"

class UnauthorizedError(HttpError): pass           # 401
class ForbiddenError(HttpError): pass              # 403
class NotFoundError(HttpError): pass               # 404
class ThrottleError(HttpError): pass               # 429
class ServerError(HttpError): pass                 # 5xx
class ServiceUnavailableError(ServerError): pass   # 503
class NetworkError(HttpError): pass                # request/timeout


def parse_graph_error(text: str) -> tuple[str, str]:
    """Pull (code, message) out of a Graph error envelope; blanks when absent."""
    try:
        data = json.loads(text or "")
    except ValueError:
        return "", ""
    if not isinstance(data, dict):
        return "", ""
    err = data.get("error")
    if isinstance(err, dict):
        return str(err.get("code") or ""), str(err.get("message") or "")
    if isinstance(err, str):
        # OAuth-style {"error": "...", "error_description": "..."}
        return err, str(data.get("error_description") or "")
    return "", ""


def error_for_status(status: int, url: str, body_text: str = "", max_snip: int = 400) -> HttpError:
    graph_code, graph_msg = parse_graph_error(body_text)
    snip = (body_text or "")[:max_snip]
    if status == 401:
        return UnauthorizedError(401, url, graph_msg or "Unauthorized", snip, graph_code)
    if status == 403:
        return ForbiddenError(403, url, graph_msg or "Forbidden", snip, graph_code)
    if status == 404:
        return NotFoundError(404, url, graph_msg or "Not Found", snip, graph_code)
    if status == 429:
        return ThrottleError(429, url, graph_msg or "Too Many Requests", snip, graph_code)
    if status == 503:
        return ServiceUnavailableError(503, url, graph_msg or "Service Unavailable", snip, graph_code)
    if 500 <= status <= 599:
        return ServerError(status, url, graph_msg or "Server error", snip, graph_code)
    return HttpError(status, url, graph_msg or "HTTP error", snip, graph_code)
