"""Command line interface.

SSH username and password are asked for on the terminal the first time a
command needs them, and reused for every host of that command.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import typer

from usermgmt import __version__
from usermgmt.config import settings
from usermgmt.exceptions import UsermgmtError, format_error_chain
from usermgmt.models.users import Group, NewUser, UserAddRequest, UserChanges
from usermgmt.services import operations
from usermgmt.services.credentials import InteractiveSshCredential
from usermgmt.utils.logging import get_logger, setup_logging

log = get_logger(__name__)

app = typer.Typer(
    add_completion=False,
    help="Manage users in LDAP, Slurm and on the cluster file systems.",
)

LDAP_OPTION = typer.Option(
    None,
    "--ldap/--no-ldap",
    help="Perform the action in LDAP. Overrides USERMGMT_INCLUDE_LDAP.",
)
SLURM_OPTION = typer.Option(
    None,
    "--slurm/--no-slurm",
    help="Perform the action in Slurm. Overrides USERMGMT_INCLUDE_SLURM.",
)
DIRS_OPTION = typer.Option(
    None,
    "--dirs/--no-dirs",
    help="Create or remove user directories. Overrides USERMGMT_INCLUDE_DIR_MGMT.",
)
SSH_KEY_PATH_OPTION = typer.Option(
    None,
    "--ssh-key-path",
    help="Private key tried before password login. Overrides USERMGMT_SSH_KEY_PATH.",
)


def _run(action: Callable[[], None]) -> None:
    """Run ``action``; print any failure with its causes and exit 1."""
    try:
        action()
    except (UsermgmtError, ValueError) as exc:
        log.debug("cli.failed", error=str(exc))
        typer.echo(format_error_chain(exc), err=True)
        raise typer.Exit(code=1) from exc


def _systems(
    ldap: Optional[bool],
    slurm: Optional[bool],
    dirs: Optional[bool],
) -> operations.OnWhichSystem:
    return operations.OnWhichSystem.from_config(settings, ldap=ldap, slurm=slurm, dirs=dirs)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"usermgmt {__version__}")
        raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show the usermgmt version and exit.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override USERMGMT_LOG_LEVEL.",
    ),
) -> None:
    setup_logging(log_level)


@app.command()
def add(
    username: str = typer.Argument(..., help="Login name of the new user."),
    firstname: str = typer.Option(..., "--firstname", "-f"),
    lastname: str = typer.Option(..., "--lastname", "-l"),
    group: Group = typer.Option(Group.student, "--group", "-g", case_sensitive=False),
    mail: Optional[str] = typer.Option(None, "--mail", "-m"),
    default_qos: Optional[str] = typer.Option(None, "--default-qos", "-d"),
    qos: Optional[list[str]] = typer.Option(
        None,
        "--qos",
        "-q",
        help="Repeat for several QOS; defaults depend on the group.",
    ),
    publickey: Optional[str] = typer.Option(None, "--publickey", "-k"),
    ldap: Optional[bool] = LDAP_OPTION,
    slurm: Optional[bool] = SLURM_OPTION,
    dirs: Optional[bool] = DIRS_OPTION,
    ssh_key_path: Optional[Path] = SSH_KEY_PATH_OPTION,
) -> None:
    """Add a user."""

    def action() -> None:
        user = NewUser.from_request(
            UserAddRequest(
                username=username,
                firstname=firstname,
                lastname=lastname,
                mail=mail,
                group=group,
                default_qos=default_qos,
                qos=qos or [],
                publickey=publickey,
            ),
            settings,
        )
        operations.add_user(
            user,
            _systems(ldap, slurm, dirs),
            settings,
            InteractiveSshCredential(settings, key_path=ssh_key_path),
        )
        typer.echo(f"Added user {user.username}")

    _run(action)


@app.command()
def delete(
    username: str = typer.Argument(..., help="Login name of the user to remove."),
    ldap: Optional[bool] = LDAP_OPTION,
    slurm: Optional[bool] = SLURM_OPTION,
    dirs: Optional[bool] = DIRS_OPTION,
    ssh_key_path: Optional[Path] = SSH_KEY_PATH_OPTION,
) -> None:
    """Delete a user."""

    def action() -> None:
        operations.delete_user(
            username.strip(),
            _systems(ldap, slurm, dirs),
            settings,
            InteractiveSshCredential(settings, key_path=ssh_key_path),
        )
        typer.echo(f"Deleted user {username}")

    _run(action)


@app.command()
def modify(
    username: str = typer.Argument(..., help="Login name of the user to change."),
    firstname: Optional[str] = typer.Option(None, "--firstname", "-f"),
    lastname: Optional[str] = typer.Option(None, "--lastname", "-l"),
    mail: Optional[str] = typer.Option(None, "--mail", "-m"),
    default_qos: Optional[str] = typer.Option(None, "--default-qos", "-d"),
    qos: Optional[list[str]] = typer.Option(
        None,
        "--qos",
        "-q",
        help="New QOS list; must be given together with --default-qos.",
    ),
    publickey: Optional[str] = typer.Option(None, "--publickey", "-k"),
    ldap: Optional[bool] = LDAP_OPTION,
    slurm: Optional[bool] = SLURM_OPTION,
    ssh_key_path: Optional[Path] = SSH_KEY_PATH_OPTION,
) -> None:
    """Modify a user. Slurm only keeps QOS and default QOS."""

    def action() -> None:
        changes = UserChanges(
            username=username.strip(),
            firstname=firstname,
            lastname=lastname,
            mail=mail,
            default_qos=default_qos,
            qos=qos or None,
            publickey=publickey,
        )
        changes.validate_qos(settings)
        operations.modify_user(
            changes,
            _systems(ldap, slurm, False),
            settings,
            InteractiveSshCredential(settings, key_path=ssh_key_path),
        )
        typer.echo(f"Modified user {changes.username}")

    _run(action)


@app.command("list")
def list_users(
    parsable: bool = typer.Option(
        False,
        "--parsable",
        help="Print headers and rows separated by '|'.",
    ),
    ldap: Optional[bool] = LDAP_OPTION,
    slurm: Optional[bool] = SLURM_OPTION,
    ssh_key_path: Optional[Path] = SSH_KEY_PATH_OPTION,
) -> None:
    """List users."""

    def action() -> None:
        listing = operations.list_users(
            _systems(ldap, slurm, False),
            settings,
            InteractiveSshCredential(settings, key_path=ssh_key_path),
            parsed=parsable,
        )
        if listing.ldap is not None:
            typer.echo(listing.ldap)
        if listing.slurm_raw:
            typer.echo(listing.slurm_raw)

    _run(action)


def main() -> None:
    app()
