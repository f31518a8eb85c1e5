"""API commands -- call the Trayar API from the command line.

Provides three top-level commands:

* ``trayar health`` -- query the health endpoint.
* ``trayar request METHOD PATH`` -- send an arbitrary request through the
  full pipeline (auth, refresh, retry, cache).
* ``trayar upload PATH FILE`` -- upload a recording as multipart form data
  with a progress bar.

Every command prints the envelope's ``data`` on success and exits with the
code of the mapped :class:`~trayar.exceptions.TrayarError` on failure.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from trayar.commands.common import emit, parse_pairs, run_with_client
from trayar.exit_codes import EXIT_INVALID_USAGE
from trayar.models import HTTPMethod
from trayar.output import OutputFormat, error, get_output


def health_command(ctx: typer.Context) -> None:
    """Check that the API is reachable.

    Example::

        trayar health
        trayar --json health
    """
    resp = run_with_client(ctx, lambda client: client.health_check())
    emit(resp)


def request_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method: GET, POST, PUT, PATCH or DELETE."),
    path: str = typer.Argument(help="Path relative to the API base URL, e.g. /sessions."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Query parameter as key=value (repeatable)."
    ),
    body: Optional[str] = typer.Option(None, "--body", "-d", help="JSON request body."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
) -> None:
    """Send a request to the API.

    Example::

        trayar request GET /sessions -p page=2
        trayar request PUT /auth/profile --body '{"name": "Dr. Ada"}'
    """
    try:
        verb = HTTPMethod(method.upper())
    except ValueError:
        error(f"Unsupported method: {method}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    params = parse_pairs(param, "--param")
    payload = _parse_body(body)

    async def _send(client: Any) -> Any:
        if verb is HTTPMethod.GET:
            return await client.get(path, params=params or None, bypass_cache=no_cache)
        if verb is HTTPMethod.DELETE:
            return await client.delete(path, params=params or None)
        sender = getattr(client, verb.value.lower())
        return await sender(path, body=payload, params=params or None)

    emit(run_with_client(ctx, _send))


def upload_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Upload endpoint, e.g. /sessions/42/audio."),
    file: Path = typer.Argument(
        help="File to upload.", exists=True, dir_okay=False, readable=True
    ),
    meta: Optional[list[str]] = typer.Option(
        None, "--meta", "-m", help="Extra form field as key=value (repeatable)."
    ),
    content_type: Optional[str] = typer.Option(
        None, "--content-type", help="Override the guessed content type."
    ),
) -> None:
    """Upload a file as multipart form data.

    Example::

        trayar upload /sessions/42/audio visit.m4a -m duration=312
    """
    from trayar.models import UploadFile

    metadata = parse_pairs(meta, "--meta")
    upload = UploadFile.from_path(file, content_type=content_type)
    output = get_output()

    if output.format is OutputFormat.RICH and not output.is_quiet:
        with Progress(
            TextColumn("[bold]Uploading {task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
        ) as progress:
            task = progress.add_task(upload.name, total=100)
            resp = run_with_client(
                ctx,
                lambda client: client.upload(
                    path,
                    upload,
                    metadata=metadata,
                    on_progress=lambda pct: progress.update(task, completed=pct),
                ),
            )
    else:
        resp = run_with_client(
            ctx,
            lambda client: client.upload(
                path,
                upload,
                metadata=metadata,
                on_progress=lambda pct: output.debug(f"Upload progress: {pct}%"),
            ),
        )
    emit(resp)


def _parse_body(body: Optional[str]) -> Any:
    """Parse *body* as JSON if possible, returning the raw string on failure."""
    if body is None:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body
