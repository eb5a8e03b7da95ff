"""Administrative command line interface for Rapport."""

from __future__ import annotations

import json
import secrets
from pathlib import Path

import click
from dotenv import set_key
from sqlalchemy import func

from rapport import create_app, db
from rapport.models.user import User
from rapport.relations import RefreshCoordinator, RelationError, RelationStore
from rapport.relations.coordinator import AcceptFriendRequest, SendFriendRequest, run_polling

ENV_PATH = Path(".env")


def _app(ctx: click.Context):
    ctx.ensure_object(dict)
    if "app" not in ctx.obj:
        ctx.obj["app"] = create_app()
    return ctx.obj["app"]


def _user_by_email(email: str) -> User:
    user = User.query.filter(func.lower(User.email) == email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User '{email}' was not found")
    return user


def _print_views(coordinator: RefreshCoordinator) -> None:
    friends = coordinator.friends.views
    groups = coordinator.groups.views
    for title, contacts in (
        ("Friends", friends.friends),
        ("Friend requests", friends.incoming),
        ("Sent friend requests", friends.outgoing),
        ("Other users", friends.unrelated),
    ):
        names = ", ".join(f"{contact.display_name} (#{contact.id})" for contact in contacts)
        click.echo(f"{title}: {names or '-'}")
    for title, entries in (("Groups", groups.member), ("Group invites", groups.invited)):
        names = ", ".join(f"{group.name} (#{group.id})" for group in entries)
        click.echo(f"{title}: {names or '-'}")
    for violation in friends.violations:
        click.secho(f"! {violation}", fg="yellow")


@click.group()
@click.pass_context
def cli(ctx):
    """Utilities for managing Rapport users and relations."""
    ctx.ensure_object(dict)


@cli.command("init")
@click.pass_context
def init(ctx):
    """Interactive first-time setup: write .env and create the tables."""
    click.echo("Rapport setup wizard\n====================")
    click.echo("Provide your MySQL database connection details. The database must already exist.")
    host = click.prompt("MySQL host", default="localhost")
    port = click.prompt("MySQL port", default=3306, type=int)
    name = click.prompt("Database name", default="rapport")
    user = click.prompt("Database user", default="rapport")
    password = click.prompt("Database password", hide_input=True)
    contacts_poll = click.prompt("Contacts refresh interval (seconds)", default=10, type=click.IntRange(min=1))
    chat_poll = click.prompt("Chat refresh interval (seconds)", default=5, type=click.IntRange(min=1))

    if not ENV_PATH.exists():
        ENV_PATH.touch()
    set_key(str(ENV_PATH), "SECRET_KEY", secrets.token_hex(16))
    set_key(str(ENV_PATH), "DATABASE_URL", f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}")
    set_key(str(ENV_PATH), "CONTACTS_POLL_SECONDS", str(contacts_poll))
    set_key(str(ENV_PATH), "CHAT_POLL_SECONDS", str(chat_poll))
    click.secho("[+] .env file generated.", fg="green")

    app = _app(ctx)
    with app.app_context():
        db.create_all()
    click.secho("[+] Database tables created.", fg="green")


@cli.command("add-user")
@click.option("--first-name", required=True, help="First name")
@click.option("--last-name", required=True, help="Last name")
@click.option("--email", required=True, help="Email address")
@click.option("--password", required=True, help="Password for the new account")
@click.pass_context
def add_user(ctx, first_name: str, last_name: str, email: str, password: str):
    """Create a new Rapport user."""
    email = email.strip().lower()
    with _app(ctx).app_context():
        if User.query.filter(func.lower(User.email) == email).first():
            raise click.ClickException(f"Email '{email}' is already registered")
        user = User(first_name=first_name, last_name=last_name, email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.secho(f"User '{email}' created with id {user.id}", fg="green")


@cli.command("set-password")
@click.option("--email", required=True, help="Existing email address")
@click.option("--password", required=True, help="New password")
@click.pass_context
def set_password(ctx, email: str, password: str):
    """Update a user's password."""
    with _app(ctx).app_context():
        user = _user_by_email(email)
        user.set_password(password)
        db.session.commit()
        click.secho(f"Password updated for '{user.email}'", fg="green")


@cli.command("contacts")
@click.argument("email")
@click.option("--json", "as_json", is_flag=True, help="Print the views as JSON")
@click.pass_context
def contacts(ctx, email: str, as_json: bool):
    """Show the friend and group views of a user."""
    with _app(ctx).app_context():
        user = _user_by_email(email)
        coordinator = RefreshCoordinator(RelationStore(db.session), user.id)
        if not coordinator.tick():
            raise click.ClickException("Unable to load contacts")
        if as_json:
            click.echo(json.dumps(coordinator.snapshot(), indent=2))
        else:
            _print_views(coordinator)


@cli.command("watch")
@click.argument("email")
@click.option("--interval", default=None, type=click.IntRange(min=1), help="Seconds between refreshes")
@click.option("--ticks", default=None, type=click.IntRange(min=1), help="Stop after this many refreshes")
@click.pass_context
def watch(ctx, email: str, interval, ticks):
    """Refresh a user's views at a fixed interval."""
    app = _app(ctx)
    with app.app_context():
        user = _user_by_email(email)
        coordinator = RefreshCoordinator(RelationStore(db.session), user.id)
        interval = interval or app.config["CONTACTS_POLL_SECONDS"]

        def report(current, ok):
            if not ok:
                click.secho("Refresh failed, showing previous views", fg="yellow")
            click.echo(f"--- {current.last_refreshed_at or 'never'} ---")
            _print_views(current)

        run_polling(coordinator, interval, on_tick=report, max_ticks=ticks)


@cli.command("befriend")
@click.argument("email")
@click.argument("target_email")
@click.pass_context
def befriend(ctx, email: str, target_email: str):
    """Send a friend request from EMAIL to TARGET_EMAIL."""
    with _app(ctx).app_context():
        user = _user_by_email(email)
        target = _user_by_email(target_email)
        coordinator = RefreshCoordinator(RelationStore(db.session), user.id)
        try:
            coordinator.dispatch(SendFriendRequest(target.id))
        except RelationError as exc:
            raise click.ClickException(exc.message) from exc
        click.secho(f"Friend request sent to '{target.email}'", fg="green")


@cli.command("accept")
@click.argument("email")
@click.argument("requester_email")
@click.pass_context
def accept(ctx, email: str, requester_email: str):
    """Accept the friend request REQUESTER_EMAIL sent to EMAIL."""
    with _app(ctx).app_context():
        user = _user_by_email(email)
        requester = _user_by_email(requester_email)
        coordinator = RefreshCoordinator(RelationStore(db.session), user.id)
        try:
            coordinator.dispatch(AcceptFriendRequest(requester.id))
        except RelationError as exc:
            raise click.ClickException(exc.message) from exc
        click.secho(f"You are now friends with '{requester.email}'", fg="green")


if __name__ == "__main__":
    cli()
