"""CLI entrypoint for Vault Index."""

from __future__ import annotations

import json
import os
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="vidx", help="Vault Index command-line interface")

DEFAULT_HOST = "http://127.0.0.1:5173"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("VIDX_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=60, **kwargs)
    except requests.ConnectionError as exc:
        typer.echo(f"Cannot reach {base}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo(resp: requests.Response) -> None:
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def sync(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Re-index every document in the vault."""
    _echo(_request("POST", "/index/sync", host=host))


@app.command()
def enqueue(
    paths: List[str] = typer.Argument(..., help="Vault-relative document paths"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Queue documents for incremental indexing."""
    _echo(_request("POST", "/index/enqueue", host=host, json={"paths": paths}))


@app.command()
def delete(
    path: str = typer.Argument(..., help="Vault-relative document path"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Drop a document's passages from the index."""
    _echo(_request("POST", "/index/delete", host=host, json={"path": path}))


@app.command()
def rename(
    old_path: str = typer.Argument(..., help="Previous path"),
    new_path: str = typer.Argument(..., help="New path"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Move a document's index entries to a new path."""
    _echo(_request("POST", "/index/rename", host=host, json={"old_path": old_path, "new_path": new_path}))


@app.command()
def status(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show scheduler state."""
    _echo(_request("GET", "/index/status", host=host))


@app.command()
def query(
    q: str = typer.Argument(..., help="Query text"),
    k: Optional[int] = typer.Option(None, "--k", help="Number of results to return"),
    min_score: Optional[float] = typer.Option(None, "--min-score", help="Minimum cosine score"),
    highlights: bool = typer.Option(True, "--highlights/--no-highlights", help="Attach keyword highlights"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run a semantic search."""
    payload: dict[str, object] = {"query": q, "include_highlights": highlights}
    if k is not None:
        payload["top_k"] = k
    if min_score is not None:
        payload["min_score"] = min_score
    _echo(_request("POST", "/query", host=host, json=payload))


@app.command()
def stats(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show vector store statistics."""
    _echo(_request("GET", "/stats", host=host))


if __name__ == "__main__":
    app()
