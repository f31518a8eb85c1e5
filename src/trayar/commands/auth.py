"""Auth commands -- manage the signed-in session.

Provides the ``trayar auth`` sub-command group. Tokens issued by the API
are persisted in the :class:`~trayar.auth.credential_store.FileTokenStore`
and picked up by every later command.

Typical workflow::

    trayar auth login --email dr@example.com   # prompts for the password
    trayar auth status
    trayar auth profile
    trayar auth logout
"""

from __future__ import annotations

from typing import Optional

import typer

from trayar.commands.common import emit, run_with_client
from trayar.output import get_output, info, success, suggest


auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email."),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Account password."
    ),
) -> None:
    """Sign in and store the issued tokens.

    Example::

        trayar auth login --email dr@example.com
    """
    from trayar.auth.session import AuthSession

    resp = run_with_client(ctx, lambda client: AuthSession(client).login(email, password))
    if resp.success:
        user = resp.data.get("user") if isinstance(resp.data, dict) else None
        name = user.get("name") if isinstance(user, dict) else None
        success(f"Signed in as {name or email}.")
        return
    emit(resp)


@auth_app.command("register")
def auth_register(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", prompt=True, help="Full name."),
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email."),
    password: str = typer.Option(
        ...,
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Account password.",
    ),
    specialization: Optional[str] = typer.Option(
        None, "--specialization", help="Dental specialization, e.g. orthodontics."
    ),
) -> None:
    """Create an account and sign in."""
    from trayar.auth.session import AuthSession

    resp = run_with_client(
        ctx,
        lambda client: AuthSession(client).register(name, email, password, specialization),
    )
    if resp.success:
        success(f"Account created for {email}.")
        return
    emit(resp)


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Sign out and forget the stored tokens.

    The local session is always cleared, even if the server cannot be
    reached.
    """
    from trayar.auth.session import AuthSession

    run_with_client(ctx, lambda client: AuthSession(client).logout())
    success("Signed out.")


@auth_app.command("status")
def auth_status() -> None:
    """Show whether a session is stored, without contacting the API."""
    from trayar.auth.credential_store import FileTokenStore

    store = FileTokenStore()
    stored = store.load()
    if stored is None or not stored.token:
        info("Not signed in.")
        suggest("Sign in: trayar auth login")
        return

    rows = [
        ["Token", _preview(stored.token)],
        ["Refresh Token", _preview(stored.refresh_token) if stored.refresh_token else "-"],
        ["Updated At", str(stored.updated_at) if stored.updated_at else "-"],
        ["Stored In", str(store.path)],
    ]
    get_output().print_table(["Field", "Value"], rows, title="Session")


@auth_app.command("profile")
def auth_profile(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the response cache."),
) -> None:
    """Show the signed-in user's profile."""
    from trayar.auth.session import AuthSession

    emit(run_with_client(ctx, lambda client: AuthSession(client).profile(refresh=refresh)))


def _preview(token: str) -> str:
    return token[:8] + "..." if len(token) > 8 else token
