from __future__ import annotations

import asyncio
import logging

import typer

from couch_session.config import settings
from couch_session.infrastructure.session_pool import CouchSessionPool

app = typer.Typer(help="CouchDB cookie session client")


async def _fire(url: str, method: str, repeat: int, username: str, password: str, session: str) -> tuple[list[int], CouchSessionPool]:
    pool = CouchSessionPool()
    creds = {"username": username, "password": password} if username else None
    http = pool.connect(url, credentials=creds, session=session or None)
    try:
        responses = await asyncio.gather(*(http.request(method, url) for _ in range(repeat)))
    finally:
        await pool.aclose()
    return [r.status_code for r in responses], pool


def _setup_logging() -> None:
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def request(
    url: str = typer.Argument(settings.couch_url),
    method: str = typer.Option("GET", "--method", "-X"),
    repeat: int = typer.Option(1, "--repeat", "-n", min=1),
    username: str = typer.Option(settings.couch_username, "--username", "-u"),
    password: str = typer.Option(settings.couch_password, "--password", "-p"),
    session: str = typer.Option(settings.couch_session, "--session", "-s"),
) -> None:
    """Sends REPEAT concurrent requests to URL through one session pool."""
    _setup_logging()
    statuses, _ = asyncio.run(_fire(url, method.upper(), repeat, username, password, session))
    for status in statuses:
        typer.echo(f"{method.upper()} {url} -> {status}")


@app.command()
def metrics(
    url: str = typer.Argument(settings.couch_url),
    repeat: int = typer.Option(1, "--repeat", "-n", min=1),
    username: str = typer.Option(settings.couch_username, "--username", "-u"),
    password: str = typer.Option(settings.couch_password, "--password", "-p"),
    session: str = typer.Option(settings.couch_session, "--session", "-s"),
) -> None:
    """Like ``request`` but prints the session counters instead of statuses."""
    _setup_logging()
    _, pool = asyncio.run(_fire(url, "GET", repeat, username, password, session))
    typer.echo(pool.metrics.render())


if __name__ == "__main__":
    app()
