"""Administrator commands for provisioning and diagnostics."""

# purpose: let operators check configuration and provision access without the SPA
# status: active
# depends_on: agrotech.config, agrotech.services.provisioning, agrotech.services.invites

from __future__ import annotations

import json
from typing import Callable

import typer
from sqlalchemy.orm import Session

from ..config import Settings, resolve_backend_credentials
from ..database import SessionLocal
from ..errors import AgroTechError, ConfigurationError
from ..services import invites, provisioning
from ..session import SessionGuard
from ..supabase_client import BackendProvider

app = typer.Typer(help="AgroTech administration commands")


def check_config(settings: Settings | None = None) -> dict[str, object]:
    """Report where backend credentials come from, or how to supply them."""

    settings = settings or Settings.from_env()
    try:
        creds = resolve_backend_credentials(settings)
    except ConfigurationError as exc:
        return {"configured": False, "error": exc.message, "hint": exc.hint}
    return {
        "configured": True,
        "source": creds.source,
        "url": creds.url,
        "service_role_key": bool(creds.service_role_key),
    }


def provision_login(
    email: str,
    *,
    plan: str = "1_month",
    client_name: str | None = None,
    backend=None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> dict[str, object]:
    backend = backend or BackendProvider(Settings.from_env()).get_client()
    session = session_factory()
    try:
        login, password = provisioning.create_login_with_auth(
            session, backend, email=email, plan=plan, client_name=client_name
        )
        return {
            "id": login.id,
            "username": login.username,
            "password": password,
            "plan": login.plan,
            "expires_at": login.expires_at.isoformat() if login.expires_at else None,
        }
    finally:
        session.close()


def create_invite(
    email: str,
    *,
    expires_in: str = "7",
    settings: Settings | None = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> dict[str, object]:
    settings = settings or Settings.from_env()
    if expires_in != invites.LIFETIME:
        try:
            days: int | str = int(expires_in)
        except ValueError as exc:
            raise typer.BadParameter("expires-in must be a number of days or 'lifetime'") from exc
    else:
        days = expires_in
    session = session_factory()
    try:
        invite = invites.create_invite(session, email, days)
        return {
            "code": invite.code,
            "email": invite.email,
            "expires_at": invite.expires_at.isoformat() if invite.expires_at else None,
            "invite_url": invites.build_invite_url(invite.code, base_url=settings.app_base_url),
        }
    finally:
        session.close()


@app.command("check-config")
def check_config_command() -> None:
    summary = check_config()
    typer.echo(json.dumps(summary))
    if not summary["configured"]:
        raise typer.Exit(code=1)


@app.command("provision-login")
def provision_login_command(
    email: str,
    plan: str = typer.Option("1_month", help="1_month, 3_months, 6_months, 1_year or lifetime"),
    client_name: str = typer.Option(None, help="Client name stored with the login"),
) -> None:
    """Create the auth identity and login row together."""

    if plan not in provisioning.PLAN_DURATIONS:
        raise typer.BadParameter(f"Unknown plan '{plan}'")
    try:
        summary = provision_login(email, plan=plan, client_name=client_name)
    except AgroTechError as exc:
        typer.echo(json.dumps({"error": str(exc)}), err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(summary))


@app.command("create-invite")
def create_invite_command(
    email: str,
    expires_in: str = typer.Option("7", help="Days until expiry, or 'lifetime'"),
) -> None:
    typer.echo(json.dumps(create_invite(email, expires_in=expires_in)))


@app.command("watch-session")
def watch_session_command(
    token: str,
    max_polls: int = typer.Option(None, help="Stop after this many checks"),
) -> None:
    """Poll the auth server until the session behind TOKEN disappears."""

    settings = Settings.from_env()
    guard = SessionGuard(BackendProvider(settings).get_client(), settings.session_poll_interval)

    def report(state) -> None:
        typer.echo(
            json.dumps(
                {
                    "authenticated": state.authenticated,
                    "email": state.identity.email if state.identity else None,
                    "reason": state.reason,
                }
            )
        )

    last = guard.watch(
        token,
        report,
        on_error=lambda exc: typer.echo(f"check failed: {exc}", err=True),
        max_polls=max_polls,
    )
    if last is not None and not last.authenticated:
        raise typer.Exit(code=2)


if __name__ == "__main__":
    app()
