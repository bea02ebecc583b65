"""Tests for session establishment against MSAL."""
from __future__ import annotations

import base64
import json
import sys
import time
from unittest.mock import MagicMock, patch

import pytest

from intunegraph.core import auth_helpers
from intunegraph.core.auth import (
    AuthError, ConsentRequired, InvalidClientSecret, InvalidTenantId,
    LoginCancelled, MissingDependencyError, Session, connect, try_connect,
)
from intunegraph.core.clouds import GraphCloud


def _jwt(claims: dict) -> str:
    def seg(d):
        return base64.urlsafe_b64encode(json.dumps(d).encode()).decode().rstrip("=")
    return f"{seg({'alg': 'none'})}.{seg(claims)}.sig"


def _user_result(**extra):
    res = {
        "access_token": "user-token",
        "expires_in": 3600,
        "scope": "https://graph.microsoft.us/DeviceManagementRBAC.Read.All https://graph.microsoft.us/User.Read",
        "id_token_claims": {"tid": "tenant-123", "preferred_username": "admin@contoso.us"},
    }
    res.update(extra)
    return res


@pytest.fixture
def fake_msal():
    msal = MagicMock()
    with patch.object(auth_helpers, "load_auth_library", return_value=msal):
        yield msal


class TestConnect:
    def test_interactive_login_reads_back_context(self, fake_msal):
        app = fake_msal.PublicClientApplication.return_value
        app.acquire_token_interactive.return_value = _user_result()

        session = connect(["DeviceManagementRBAC.Read.All", "openid"], "USGov")

        assert session.cloud is GraphCloud.USGOV
        assert session.base_url == "https://graph.microsoft.us"
        assert session.tenant_id == "tenant-123"
        assert session.account == "admin@contoso.us"
        assert len(session.scopes) == 2
        assert session.token() == "user-token"

        args, kwargs = fake_msal.PublicClientApplication.call_args
        assert args[0] == auth_helpers.DEFAULT_PUBLIC_CLIENT_ID
        assert kwargs["authority"] == "https://login.microsoftonline.us/organizations"
        app.acquire_token_interactive.assert_called_once_with(
            scopes=["https://graph.microsoft.us/DeviceManagementRBAC.Read.All"]
        )

    def test_unknown_cloud_connects_to_global(self, fake_msal):
        app = fake_msal.PublicClientApplication.return_value
        app.acquire_token_interactive.return_value = _user_result()

        session = connect(["User.Read"], "Atlantis")

        assert session.base_url == "https://graph.microsoft.com"

    def test_device_code_flow_prints_message(self, fake_msal, capsys):
        app = fake_msal.PublicClientApplication.return_value
        app.initiate_device_flow.return_value = {"user_code": "ABC", "message": "Go to https://microsoft.com/devicelogin"}
        app.acquire_token_by_device_flow.return_value = _user_result()

        connect(["User.Read"], "Global", mode="device_code")

        assert "devicelogin" in capsys.readouterr().out

    def test_client_secret_uses_default_scope_and_token_claims(self, fake_msal):
        app = fake_msal.ConfidentialClientApplication.return_value
        app.acquire_token_for_client.return_value = {
            "access_token": _jwt({"tid": "tenant-9", "appid": "app-1", "roles": ["DeviceManagementApps.Read.All"]}),
            "expires_in": 3599,
        }

        session = connect([], "China", mode="client_secret", tenant_id="tenant-9",
                          client_id="app-1", client_secret="s3cret")

        app.acquire_token_for_client.assert_called_with(
            scopes=["https://microsoftgraph.chinacloudapi.cn/.default"]
        )
        assert session.tenant_id == "tenant-9"
        assert session.account == "app:app-1"
        assert session.scopes == ["DeviceManagementApps.Read.All"]

    def test_client_secret_requires_tenant(self, fake_msal):
        with pytest.raises(InvalidTenantId):
            connect([], mode="client_secret", client_id="a", client_secret="b")
        fake_msal.ConfidentialClientApplication.assert_not_called()

    @pytest.mark.parametrize("error, desc, exc_type", [
        ("invalid_client", "AADSTS7000215: Invalid client secret provided.", InvalidClientSecret),
        ("invalid_grant", "AADSTS65001: The user or administrator has not consented", ConsentRequired),
        ("access_denied", "", LoginCancelled),
        ("weird", "something else", AuthError),
    ])
    def test_msal_errors_are_mapped(self, fake_msal, error, desc, exc_type):
        app = fake_msal.PublicClientApplication.return_value
        app.acquire_token_interactive.return_value = {"error": error, "error_description": desc}
        with pytest.raises(exc_type):
            connect(["User.Read"])

    def test_unknown_mode(self, fake_msal):
        with pytest.raises(AuthError):
            connect(["User.Read"], mode="kerberos")


class TestTryConnect:
    def test_missing_library_fails_without_login(self):
        with patch.dict(sys.modules, {"msal": None}), \
                patch.object(auth_helpers, "acquire_token") as acquire:
            outcome = try_connect(["User.Read"], "Global")

        assert not outcome
        assert isinstance(outcome.error, MissingDependencyError)
        acquire.assert_not_called()

    def test_login_failure_is_reported_not_raised(self, fake_msal):
        app = fake_msal.PublicClientApplication.return_value
        app.acquire_token_interactive.return_value = {"error": "access_denied"}

        outcome = try_connect(["User.Read"])

        assert not outcome
        assert isinstance(outcome.error, LoginCancelled)
        with pytest.raises(LoginCancelled):
            outcome.unwrap()

    def test_unexpected_exception_is_reported(self, fake_msal):
        fake_msal.PublicClientApplication.side_effect = RuntimeError("broker exploded")
        outcome = try_connect(["User.Read"])
        assert not outcome
        assert "broker exploded" in str(outcome.error)

    def test_success(self, fake_msal):
        fake_msal.PublicClientApplication.return_value.acquire_token_interactive.return_value = _user_result()
        outcome = try_connect(["User.Read"], "USGovDoD")
        assert outcome
        assert outcome.unwrap().base_url == "https://dod-graph.microsoft.us"


class TestSession:
    def _session(self, **kw):
        defaults = dict(cloud=GraphCloud.GLOBAL, tenant_id="t", account="a", scopes=[], expires_on=time.time() + 3600)
        defaults.update(kw)
        return Session(**defaults)

    def test_cached_token_reused(self):
        refresh = MagicMock()
        s = self._session(_refresh=refresh, _access_token="current")
        assert s.token() == "current"
        refresh.assert_not_called()

    def test_expired_token_refreshed(self):
        refresh = MagicMock(return_value={"access_token": "fresh", "expires_in": 3600})
        s = self._session(expires_on=time.time() - 10, _refresh=refresh, _access_token="stale")
        assert s.token() == "fresh"
        assert not s.expired

    def test_expired_without_refresher(self):
        s = self._session(expires_on=0, _access_token="stale")
        with pytest.raises(AuthError):
            s.token()

    def test_describe(self):
        d = self._session(cloud=GraphCloud.GERMANY).describe()
        assert d["cloud"] == "Germany"
        assert d["base_url"] == "https://graph.microsoft.de"


def test_missing_library_keeps_import_error_as_cause():
    with patch.dict(sys.modules, {"msal": None}):
        with pytest.raises(MissingDependencyError) as exc:
            auth_helpers.load_auth_library()
    assert isinstance(exc.value.__cause__, ImportError)
