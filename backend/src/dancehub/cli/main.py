"""DanceHub CLI entry point."""

import logging

import click

from dancehub.api.app import default_base_path
from dancehub.api.settings import Settings
from dancehub.auth.password import PasswordService
from dancehub.auth.types import ROLES
from dancehub.features.common import timestamp
from dancehub.features.schemas import check_email, check_person_name
from dancehub.features.users import find_user_by_email
from dancehub.persistence import create_store


@click.group()
def cli():
    """DanceHub API backend CLI."""
    pass


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=None, help="Port (default: DANCEHUB_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int | None, reload: bool):
    """Run the API with uvicorn."""
    import uvicorn

    settings = Settings.from_env(default_base_path())
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "dancehub.api:create_app",
        factory=True,
        host=host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command("create-user")
@click.option("--name", required=True, help="Display name.")
@click.option("--email", required=True, help="Login email.")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option(
    "--role",
    type=click.Choice(ROLES),
    default="admin",
    show_default=True,
    help="Role of the new account.",
)
def create_user(name: str, email: str, password: str, role: str):
    """Create an active account, e.g. the first admin."""
    try:
        check_person_name(name)
        check_email(email)
    except ValueError as e:
        raise click.BadParameter(str(e))
    if len(password) < 6:
        raise click.BadParameter("Password must be at least 6 characters")

    settings = Settings.from_env(default_base_path())
    store = create_store(settings.database)
    store.connect()
    try:
        if find_user_by_email(store, email) is not None:
            raise click.ClickException(f"A user with email {email} already exists")

        now = timestamp()
        user = store.insert_one(
            "users",
            {
                "name": name,
                "email": email,
                "password": PasswordService(rounds=settings.bcrypt_rounds).hash(password),
                "role": role,
                "status": "active",
                "createdAt": now,
                "updatedAt": now,
            },
        )
    finally:
        store.close()

    click.echo(f"Created {role} {email} ({user['id']})")
