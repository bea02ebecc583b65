"""
Entry point for the intunegraph command.
Subcommands:
- clouds  – list national clouds and their Graph base URLs
- connect – sign in and print the session context
- invoke  – sign in, run one Graph request (all pages) and print JSON
"""
from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from intunegraph.config.loader import get_auth_config, get_retry_config
from intunegraph.config.log import setup_logger
from intunegraph.core.auth import AuthError, Session, try_connect
from intunegraph.core.clouds import GraphCloud
from intunegraph.core.graph_client import GraphClient, JSON_CONTENT_TYPE
from intunegraph.http.errors import HttpError
from intunegraph.http.throttle import RetryPolicy

app = typer.Typer(add_completion=False, help="Authenticated, paginated Microsoft Graph calls.")

EXIT_CONNECT_FAILED = 1
EXIT_REQUEST_FAILED = 2


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging.")):
    setup_logger("intunegraph", logging.DEBUG if verbose else logging.INFO)


def _connect(cloud: Optional[str], scopes: List[str], mode: Optional[str], tenant: Optional[str]) -> Session:
    cfg = get_auth_config()
    outcome = try_connect(
        scopes or cfg["scopes"],
        cloud or cfg["cloud"],
        mode=mode or cfg["mode"],
        tenant_id=tenant or cfg["tenant_id"],
        client_id=cfg["client_id"],
        client_secret=cfg["client_secret"],
    )
    if not outcome:
        typer.echo(f"[AUTH] Could not connect: {outcome.error}", err=True)
        raise typer.Exit(EXIT_CONNECT_FAILED)
    return outcome.value


@app.command()
def clouds():
    """Selector -> Graph base URL."""
    for c in GraphCloud:
        typer.echo(f"{c.label:<10} {c.base_url}")


@app.command()
def connect(
    cloud: Optional[str] = typer.Option(None, "--cloud", "-c", help="Global, USGov, USGovDoD, China, Germany"),
    scope: List[str] = typer.Option([], "--scope", "-s", help="Permission scope (repeatable)."),
    mode: Optional[str] = typer.Option(None, "--mode", help="interactive | device_code | client_secret"),
    tenant: Optional[str] = typer.Option(None, "--tenant", "-t"),
):
    session = _connect(cloud, scope, mode, tenant)
    typer.echo(json.dumps(session.describe(), indent=2))


@app.command()
def invoke(
    path: str = typer.Argument(..., help="Relative Graph path (e.g. beta/deviceManagement/managedDevices) or absolute URL."),
    method: str = typer.Option("GET", "--method", "-X"),
    body: Optional[str] = typer.Option(None, "--body", "-d", help="Request body text."),
    body_file: Optional[Path] = typer.Option(None, "--body-file", exists=True, dir_okay=False),
    content_type: str = typer.Option(JSON_CONTENT_TYPE, "--content-type"),
    retry: bool = typer.Option(False, "--retry", help="Retry per appsettings 'retry' section."),
    cloud: Optional[str] = typer.Option(None, "--cloud", "-c"),
    scope: List[str] = typer.Option([], "--scope", "-s"),
    mode: Optional[str] = typer.Option(None, "--mode"),
    tenant: Optional[str] = typer.Option(None, "--tenant", "-t"),
):
    payload = body
    if body_file is not None:
        if content_type.split(";")[0].strip().lower() == JSON_CONTENT_TYPE:
            payload = body_file.read_text(encoding="utf-8")
        else:
            # certificates, blobs: sent byte-for-byte
            payload = body_file.read_bytes()

    session = _connect(cloud, scope, mode, tenant)
    graph = GraphClient(session)

    try:
        if retry:
            rc = get_retry_config()
            policy = RetryPolicy(
                max_retries=rc["max_retries"],
                delay_seconds=rc["delay_seconds"],
                statuses=frozenset(rc["statuses"]),
                backoff=rc["backoff"],
                honor_retry_after=True,
            )
            result = policy.call(graph.invoke, path, method, payload, content_type)
        else:
            result = graph.invoke(path, method, payload, content_type)
    except HttpError as err:
        typer.echo(f"[GRAPH] {method.upper()} {path} failed: HTTP {err.status} {err.message}", err=True)
        if err.body_snippet:
            typer.echo(err.body_snippet, err=True)
        raise typer.Exit(EXIT_REQUEST_FAILED)
    except AuthError as ex:  # silent token refresh failed mid-request
        typer.echo(f"[AUTH] {ex} ({ex.hint})", err=True)
        raise typer.Exit(EXIT_CONNECT_FAILED)
    except ValueError as ex:  # bad method or unencodable body
        typer.echo(f"[GRAPH] {ex}", err=True)
        raise typer.Exit(EXIT_REQUEST_FAILED)

    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))
