from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from intunegraph.core.clouds import GraphCloud, resolve_cloud
from intunegraph.core.outcome import Outcome

log = logging.getLogger(__name__)

# Refresh a little before the token service would reject us
_EXPIRY_SKEW_SECONDS = 120

# Error classes
class AuthError(Exception):
    code = "auth_error"; hint = "Unknown error."
    def __init__(self, message: str = "", *, hint: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if hint: self.hint = hint

class MissingDependencyError(AuthError):
    code = "missing_dependency"; hint = "Install the 'msal' package."
class InvalidTenantId(AuthError):
    code = "invalid_tenant_id"; hint = "Tenant ID invalid or unreachable."
class InvalidClientId(AuthError):
    code = "invalid_client_id"; hint = "Client ID invalid."
class InvalidClientSecret(AuthError):
    code = "invalid_client_secret"; hint = "Client Secret rejected."
class NetworkError(AuthError):
    code = "network_error"; hint = "Network or timeout issue."
class ConsentRequired(AuthError):
    code = "consent_required"; hint = "Admin consent required for Graph permissions."
class LoginCancelled(AuthError):
    code = "login_cancelled"; hint = "Sign-in was cancelled, denied or timed out."


@dataclass
class Session:
    """
    Authenticated handle for one cloud. Token material stays inside MSAL;
    the session only knows how to ask for a current token.
    """
    cloud: GraphCloud
    tenant_id: str
    account: str
    scopes: List[str]
    expires_on: float
    mode: str = "interactive"
    _refresh: Callable[[], Dict[str, Any]] | None = field(default=None, repr=False)
    _access_token: str = field(default="", repr=False)

    @property
    def base_url(self) -> str:
        return self.cloud.base_url

    @property
    def expired(self) -> bool:
        return time.time() >= self.expires_on - _EXPIRY_SKEW_SECONDS

    def token(self) -> str:
        if self._access_token and not self.expired:
            return self._access_token
        if self._refresh is None:
            raise AuthError("Session expired.", hint="Connect again.")
        res = self._refresh()
        self._access_token = res["access_token"]
        self.expires_on = time.time() + int(res.get("expires_in", 0))
        return self._access_token

    def describe(self) -> Dict[str, Any]:
        return {
            "cloud": self.cloud.label,
            "base_url": self.base_url,
            "tenant_id": self.tenant_id,
            "account": self.account,
            "scopes": list(self.scopes),
            "expires_on": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.expires_on)),
        }


def connect(
    scopes: Iterable[str],
    cloud: GraphCloud | str | None = GraphCloud.GLOBAL,
    *,
    mode: str = "interactive",
    tenant_id: str = "",
    client_id: str = "",
    client_secret: str = "",
) -> Session:
    resolved = resolve_cloud(cloud)

    # helpers do the heavy lifting
    from intunegraph.core.auth_helpers import (
        load_auth_library, acquire_token, session_context
    )

    msal = load_auth_library()
    print(f"[AUTH] Cloud={resolved.label} ({resolved.base_url}), mode={mode}, connecting")
    res, refresh = acquire_token(
        msal, resolved, mode, list(scopes),
        tenant_id=(tenant_id or "").strip(),
        client_id=(client_id or "").strip(),
        client_secret=(client_secret or "").strip(),
    )
    ctx = session_context(res, tenant_id=tenant_id, client_id=client_id)
    if not ctx["tenant_id"]:
        raise AuthError("Signed in, but no tenant context came back.", hint="Connect again.")

    session = Session(
        cloud=resolved,
        tenant_id=ctx["tenant_id"],
        account=ctx["account"],
        scopes=ctx["scopes"],
        expires_on=time.time() + int(res.get("expires_in", 0)),
        mode=mode,
        _refresh=refresh,
        _access_token=res["access_token"],
    )
    print(f"[AUTH] Connected tenant={session.tenant_id}, account={session.account or '-'}, "
          f"cloud={resolved.label}, scopes={len(session.scopes)}")
    return session


def try_connect(scopes: Iterable[str], cloud: GraphCloud | str | None = GraphCloud.GLOBAL, **kwargs) -> Outcome[Session]:
    """connect() that reports instead of raising; a falsy outcome means stop."""
    try:
        return Outcome.success(connect(scopes, cloud, **kwargs))
    except AuthError as ex:
        log.error("Connect failed [%s]: %s (%s)", ex.code, ex, ex.hint)
        return Outcome.failure(ex)
    except Exception as ex:
        log.error("Connect failed: %s", ex)
        return Outcome.failure(ex)
