# src/intunegraph/core/clouds.py
from __future__ import annotations
import enum
import logging

log = logging.getLogger(__name__)


class GraphCloud(enum.Enum):
    """National clouds: value is the Graph base URL."""
    GLOBAL = "https://graph.microsoft.com"
    USGOV = "https://graph.microsoft.us"
    USGOV_DOD = "https://dod-graph.microsoft.us"
    CHINA = "https://microsoftgraph.chinacloudapi.cn"
    GERMANY = "https://graph.microsoft.de"

    @property
    def base_url(self) -> str:
        return self.value

    @property
    def login_host(self) -> str:
        return _LOGIN_HOSTS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    def authority(self, tenant: str = "organizations") -> str:
        return f"https://{self.login_host}/{tenant or 'organizations'}"

    def qualify_scope(self, scope: str) -> str:
        """'User.Read' -> '<base>/User.Read'; already-qualified scopes pass through."""
        s = scope.strip()
        if s.startswith("http://") or s.startswith("https://"):
            return s
        return f"{self.base_url}/{s.lstrip('/')}"


_LOGIN_HOSTS = {
    GraphCloud.GLOBAL: "login.microsoftonline.com",
    GraphCloud.USGOV: "login.microsoftonline.us",
    GraphCloud.USGOV_DOD: "login.microsoftonline.us",
    GraphCloud.CHINA: "login.chinacloudapi.cn",
    GraphCloud.GERMANY: "login.microsoftonline.de",
}

_LABELS = {
    GraphCloud.GLOBAL: "Global",
    GraphCloud.USGOV: "USGov",
    GraphCloud.USGOV_DOD: "USGovDoD",
    GraphCloud.CHINA: "China",
    GraphCloud.GERMANY: "Germany",
}

_ALIASES = {
    "global": GraphCloud.GLOBAL,
    "default": GraphCloud.GLOBAL,
    "public": GraphCloud.GLOBAL,
    "usgov": GraphCloud.USGOV,
    "government": GraphCloud.USGOV,
    "gcchigh": GraphCloud.USGOV,
    "usgovdod": GraphCloud.USGOV_DOD,
    "dod": GraphCloud.USGOV_DOD,
    "government-defense": GraphCloud.USGOV_DOD,
    "china": GraphCloud.CHINA,
    "chinacloud": GraphCloud.CHINA,
    "germany": GraphCloud.GERMANY,
    "germancloud": GraphCloud.GERMANY,
}


def resolve_cloud(selector: GraphCloud | str | None) -> GraphCloud:
    """Unknown or empty selectors resolve to GLOBAL."""
    if isinstance(selector, GraphCloud):
        return selector
    key = (selector or "").strip().lower().replace("_", "")
    cloud = _ALIASES.get(key)
    if cloud is None:
        log.warning("Unrecognized cloud %r, using Global (%s)", selector, GraphCloud.GLOBAL.base_url)
        return GraphCloud.GLOBAL
    return cloud


def base_url_for(selector: GraphCloud | str | None) -> str:
    return resolve_cloud(selector).base_url
