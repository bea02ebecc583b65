from __future__ import annotations
import base64
import importlib
import json
from typing import Any, Callable, Dict, List, Tuple

import requests

from intunegraph.core.auth import (
    AuthError, MissingDependencyError, InvalidTenantId, InvalidClientId,
    InvalidClientSecret, NetworkError, ConsentRequired, LoginCancelled,
)
from intunegraph.core.clouds import GraphCloud

# Microsoft Graph Command Line Tools public client
DEFAULT_PUBLIC_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"

# MSAL adds these itself and rejects them when passed explicitly
_RESERVED_SCOPES = {"openid", "profile", "offline_access"}

AUTH_MODES = ("interactive", "device_code", "client_secret")


def load_auth_library():
    try:
        return importlib.import_module("msal")
    except ImportError as ex:
        raise MissingDependencyError(f"msal is not importable: {ex}") from ex


def _map_msal_error(desc: str, error: str = "") -> AuthError:
    d = desc or ""
    if "AADSTS7000215" in d:  # invalid client secret
        return InvalidClientSecret("Invalid client secret.")
    if "AADSTS700016" in d:  # invalid client id
        return InvalidClientId("Invalid client ID or app not found.")
    if "invalid_tenant" in d or "AADSTS90002" in d:
        return InvalidTenantId("Invalid tenant ID or tenant not found.")
    if "AADSTS65001" in d or "consent_required" in d:
        return ConsentRequired("Admin consent required.")
    if error in ("access_denied", "authorization_pending", "expired_token") or "AADSTS50126" in d:
        return LoginCancelled(d or error)
    return AuthError(d or error or "Unknown error")


def qualify_scopes(cloud: GraphCloud, scopes: List[str]) -> List[str]:
    out = []
    for s in scopes:
        s = (s or "").strip()
        if not s or s.lower() in _RESERVED_SCOPES:
            continue
        q = cloud.qualify_scope(s)
        if q not in out:
            out.append(q)
    return out


def _checked(res: Dict[str, Any] | None) -> Dict[str, Any]:
    res = res or {}
    if "access_token" not in res:
        raise _map_msal_error(res.get("error_description", ""), res.get("error", ""))
    return res


def acquire_token(
    msal,
    cloud: GraphCloud,
    mode: str,
    scopes: List[str],
    *,
    tenant_id: str = "",
    client_id: str = "",
    client_secret: str = "",
    prompt: Callable[[str], None] = print,
) -> Tuple[Dict[str, Any], Callable[[], Dict[str, Any]]]:
    """
    Log in once. Returns the MSAL result and a refresher that asks MSAL
    (in-memory cache first) for a current token.
    """
    if mode not in AUTH_MODES:
        raise AuthError(f"Unknown auth mode {mode!r}", hint=f"Use one of: {', '.join(AUTH_MODES)}.")
    try:
        if mode == "client_secret":
            if not tenant_id: raise InvalidTenantId("Tenant ID required for client credentials.")
            if not client_id: raise InvalidClientId("Client ID required for client credentials.")
            if not client_secret: raise InvalidClientSecret("Client Secret required.")
            app = msal.ConfidentialClientApplication(
                client_id=client_id,
                client_credential=client_secret,
                authority=cloud.authority(tenant_id),
            )
            app_scopes = [f"{cloud.base_url}/.default"]
            res = _checked(app.acquire_token_for_client(scopes=app_scopes))
            return res, lambda: _checked(app.acquire_token_for_client(scopes=app_scopes))

        user_scopes = qualify_scopes(cloud, scopes) or [f"{cloud.base_url}/.default"]
        app = msal.PublicClientApplication(
            client_id or DEFAULT_PUBLIC_CLIENT_ID,
            authority=cloud.authority(tenant_id or "organizations"),
        )
        if mode == "device_code":
            flow = app.initiate_device_flow(scopes=user_scopes)
            if "user_code" not in flow:
                raise _map_msal_error(flow.get("error_description", "Device flow could not start."),
                                      flow.get("error", ""))
            prompt(flow["message"])
            res = _checked(app.acquire_token_by_device_flow(flow))
        else:
            res = _checked(app.acquire_token_interactive(scopes=user_scopes))
    except requests.exceptions.RequestException as ex:
        raise NetworkError(str(ex))

    def refresh() -> Dict[str, Any]:
        accounts = app.get_accounts()
        if not accounts:
            raise AuthError("No signed-in account in token cache.", hint="Connect again.")
        return _checked(app.acquire_token_silent(user_scopes, account=accounts[0]))

    return res, refresh


def token_claims(access_token: str) -> Dict[str, Any]:
    """Unverified JWT payload; {} for opaque tokens."""
    parts = (access_token or "").split(".")
    if len(parts) != 3:
        return {}
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (ValueError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def session_context(res: Dict[str, Any], *, tenant_id: str = "", client_id: str = "") -> Dict[str, Any]:
    """Tenant, account and granted scopes as the token service reports them."""
    id_claims = res.get("id_token_claims") or {}
    at_claims = token_claims(res.get("access_token", ""))

    tenant = id_claims.get("tid") or at_claims.get("tid") or tenant_id
    account = (
        id_claims.get("preferred_username")
        or at_claims.get("upn")
        or at_claims.get("unique_name")
        or (f"app:{at_claims.get('appid') or client_id}" if (at_claims.get("appid") or client_id) else "")
    )
    granted = (res.get("scope") or at_claims.get("scp") or "").split()
    if not granted:
        granted = list(at_claims.get("roles") or [])
    return {"tenant_id": tenant, "account": account, "scopes": granted}
