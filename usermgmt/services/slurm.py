"""Slurm account management through sacctmgr.

Commands run either on this machine or over the head-node session,
depending on ``run_slurm_remote``.
"""

from __future__ import annotations

import subprocess
from typing import Optional

from usermgmt.config import Settings
from usermgmt.exceptions import (
    LocalExecFailed,
    NonZeroExit,
    RemoteExecFailed,
    UsermgmtError,
)
from usermgmt.models.commands import CommandResult, LocalCommand
from usermgmt.models.users import ListedUsers, NewUser, UserChanges
from usermgmt.services.command_builder import CommandBuilder
from usermgmt.services.ssh_session import SshSession, run_remote_command
from usermgmt.utils.logging import get_logger
from usermgmt.utils.sacctmgr_parser import parse_listed_users

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def _run_remote(session: SshSession, command: str) -> CommandResult:
    try:
        exit_code, output = run_remote_command(session, command)
    except RemoteExecFailed as exc:
        raise RemoteExecFailed(
            f"Error during remote Slurm command execution ({command}).",
        ) from exc
    return CommandResult(command=command, output=output, exit_code=exit_code)


def _run_local(command: LocalCommand) -> CommandResult:
    try:
        proc = subprocess.run(
            command.argv,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise LocalExecFailed(
            "Unable to execute sacctmgr command. "
            "Is the path specified in your config correct?",
        ) from exc
    if proc.stderr:
        log.debug("slurm.stderr", command=str(command), stderr=proc.stderr[:500])
    return CommandResult(
        command=str(command),
        output=proc.stdout,
        exit_code=proc.returncode,
    )


def run_slurm_action(
    builder: CommandBuilder,
    cfg: Settings,
    session: SshSession,
) -> str:
    """Run every command of ``builder`` in order and return the joined output.

    Stops at the first command that fails.

    Raises:
        NonZeroExit: a command returned a non-zero exit code.
        LocalExecFailed: sacctmgr could not be spawned locally.
        RemoteExecFailed: the command could not be run over SSH.
    """
    builder.immediate(True).sacctmgr_path(cfg.sacctmgr_path)
    remote = cfg.run_slurm_remote

    if remote:
        commands = builder.remote_commands()
    else:
        commands = builder.local_commands()

    outputs: list[str] = []
    for command in commands:
        log.debug("slurm.run", command=str(command), remote=remote)
        if remote:
            result = _run_remote(session, command)
        else:
            result = _run_local(command)
        if result.failed:
            raise NonZeroExit(result.command, result.exit_code, result.output)
        log.debug("slurm.ok", command=result.command)
        outputs.append(result.output)
    return "".join(outputs)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def add_slurm_user(user: NewUser, cfg: Settings, session: SshSession) -> None:
    """Create the Slurm user under its group account with QOS and default QOS."""
    builder = CommandBuilder.new_add(
        user.username,
        user.group.value,
        user.default_qos,
        user.qos,
    )
    try:
        run_slurm_action(builder, cfg, session)
    except UsermgmtError as exc:
        raise UsermgmtError(
            f"Failed to add user {user.username} with account "
            f"{user.group.value} to Slurm",
        ) from exc
    log.info(
        "slurm.user_added",
        username=user.username,
        account=user.group.value,
        qos=user.qos,
        default_qos=user.default_qos,
    )


def delete_slurm_user(username: str, cfg: Settings, session: SshSession) -> None:
    try:
        run_slurm_action(CommandBuilder.new_delete(username), cfg, session)
    except UsermgmtError as exc:
        raise UsermgmtError(f"Failed to delete user {username} from Slurm") from exc
    log.info("slurm.user_deleted", username=username)


def modify_slurm_user(changes: UserChanges, cfg: Settings, session: SshSession) -> bool:
    """Apply QOS changes; Slurm holds no other user attributes.

    Returns False without running anything when QOS is left unchanged.
    Raises ValueError for a QOS outside ``valid_qos``.
    """
    qos_change = changes.qos_and_default_qos()
    if qos_change is None:
        log.debug("slurm.modify_skipped", username=changes.username)
        return False

    changes.validate_qos(cfg)
    qos, default_qos = qos_change
    builder = CommandBuilder.new_modify_qos_default_qos(
        changes.username,
        default_qos,
        qos,
    )
    try:
        run_slurm_action(builder, cfg, session)
    except UsermgmtError as exc:
        raise UsermgmtError(
            f"Failed to modify user {changes.username} in Slurm",
        ) from exc
    log.info(
        "slurm.user_modified",
        username=changes.username,
        qos=qos,
        default_qos=default_qos,
    )
    return True


def list_slurm_users(cfg: Settings, session: SshSession) -> str:
    """Human readable association table."""
    return run_slurm_action(CommandBuilder.new_show(False), cfg, session)


def list_slurm_users_parsed(
    cfg: Settings,
    session: SshSession,
) -> tuple[Optional[ListedUsers], str]:
    """Parsed association table together with the raw ``--parsable`` text."""
    raw = run_slurm_action(CommandBuilder.new_show(True), cfg, session)
    return parse_listed_users(raw), raw
