from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from intunegraph.core.graph_client import GraphClient
from intunegraph.http.client import HttpClient

GRAPH = "https://graph.microsoft.com"


def make_response(status: int = 200, payload: Any = None, text: str | None = None,
                  headers: dict | None = None) -> MagicMock:
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    resp.text = text
    resp.headers = headers or {}
    return resp


@pytest.fixture
def transport() -> MagicMock:
    """Stands in for requests.Session; queue responses via side_effect."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def graph(transport) -> GraphClient:
    return GraphClient(lambda: "test-token", base_url=GRAPH, http=HttpClient(session=transport))


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep tests away from the repo's config/appsettings.json and real env."""
    monkeypatch.setenv("INTUNEGRAPH_SETTINGS", str(tmp_path / "appsettings.json"))
    for name in ("CLOUD", "TENANT_ID", "CLIENT_ID", "CLIENT_SECRET", "AUTH_MODE"):
        monkeypatch.delenv(f"INTUNEGRAPH_{name}", raising=False)
    return tmp_path / "appsettings.json"
