"""User directory provisioning on compute nodes, NFS hosts and the home host.

Every target is attempted even when an earlier one failed. Failures are
collected per role and raised together once all roles were handled.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field

from usermgmt.config import Settings
from usermgmt.exceptions import (
    AggregatedPartialFailure,
    MissingCredential,
    UsermgmtError,
)
from usermgmt.models.users import Group, NewUser
from usermgmt.services.credentials import SshCredentials
from usermgmt.services.ssh_session import SshSession, run_remote_command
from usermgmt.utils.aggregator import ResultAggregator
from usermgmt.utils.logging import get_logger

log = get_logger(__name__)

QUOTA_NOT_CONFIGURED = (
    "Hard-/softlimit and/or filesystem for quota isn't properly configured. "
    "Refusing to set user quota based on these values."
)


# ---------------------------------------------------------------------------
# Command templates
# ---------------------------------------------------------------------------


def mkdir_command(directory: str) -> str:
    return f"sudo mkdir -p {shlex.quote(directory)}"


def mkhomedir_command(username: str) -> str:
    return f"sudo mkhomedir_helper {shlex.quote(username)}"


def chown_command(directory: str, username: str, group: str) -> str:
    return f"sudo chown {shlex.quote(f'{username}:{group}')} {shlex.quote(directory)}"


def setquota_command(username: str, softlimit: str, hardlimit: str, filesystem: str) -> str:
    return (
        f"sudo setquota -u {shlex.quote(username)} {shlex.quote(softlimit)} "
        f"{shlex.quote(hardlimit)} 0 0 {shlex.quote(filesystem)}"
    )


def rm_command(directory: str) -> str:
    return f"sudo rm -r {shlex.quote(directory)}"


def _quota_configured(*values: str) -> bool:
    return all(values)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@dataclass
class _NodeCodes:
    """Exit codes of every node, kept per step."""

    mkdir: list[int] = field(default_factory=list)
    chown: list[int] = field(default_factory=list)
    quota: list[int] = field(default_factory=list)
    unreachable: list[str] = field(default_factory=list)


def handle_compute_nodes(
    user: NewUser,
    cfg: Settings,
    credentials: SshCredentials,
) -> ResultAggregator:
    """Create ``<root>/<user>`` on every compute node, hand it over and set quota."""
    errors = ResultAggregator("Failed to create directories on compute nodes.")
    if not cfg.compute_nodes:
        log.warning("dirs.compute.skipped", reason="no compute nodes configured")
        return errors
    if not cfg.compute_node_root_dir:
        log.warning("dirs.compute.skipped", reason="no root directory configured")
        return errors
    if not cfg.filesystem:
        log.warning("dirs.compute.skipped", reason="no filesystem configured")
        return errors

    can_set_quota = _quota_configured(
        cfg.quota_softlimit, cfg.quota_hardlimit, cfg.filesystem,
    )
    if not can_set_quota:
        log.warning("dirs.compute.quota_skipped", reason=QUOTA_NOT_CONFIGURED)

    directory = f"{cfg.compute_node_root_dir}/{user.username}"
    codes = _NodeCodes()
    for node in cfg.compute_nodes:
        log.info("dirs.compute.connecting", node=node)
        try:
            with SshSession.for_host(node, credentials, cfg) as session:
                mkdir_code, _ = run_remote_command(session, mkdir_command(directory))
                codes.mkdir.append(mkdir_code)
                if mkdir_code != 0:
                    continue
                chown_code, _ = run_remote_command(
                    session,
                    chown_command(directory, user.username, user.group.value),
                )
                codes.chown.append(chown_code)
                if can_set_quota:
                    quota_code, _ = run_remote_command(
                        session,
                        setquota_command(
                            user.username,
                            cfg.quota_softlimit,
                            cfg.quota_hardlimit,
                            cfg.filesystem,
                        ),
                    )
                    codes.quota.append(quota_code)
        except MissingCredential:
            raise
        except UsermgmtError as exc:
            log.warning("dirs.compute.node_failed", node=node, error=str(exc))
            codes.unreachable.append(node)

    errors.add_if(
        any(code != 0 for code in codes.mkdir),
        "Not all compute nodes returned exit code 0 during directory creation!",
    )
    errors.add_if(
        any(code != 0 for code in codes.chown),
        "Not all compute nodes returned exit code 0 during ownership change!",
    )
    errors.add_if(
        any(code != 0 for code in codes.quota),
        "Not all compute nodes returned exit code 0 during quota setup!",
    )
    errors.add_if(
        bool(codes.unreachable),
        f"Could not run commands on compute nodes: {', '.join(codes.unreachable)}",
    )
    if not errors.errors:
        log.info("dirs.compute.done", nodes=len(cfg.compute_nodes))
    return errors


def handle_nfs(
    user: NewUser,
    cfg: Settings,
    credentials: SshCredentials,
) -> ResultAggregator:
    """Create ``<root>/<staff|students>/<user>`` on every NFS host.

    ``nfs_hosts`` and the other NFS lists are matched by position.
    """
    errors = ResultAggregator("Errors during NFS directory creation occurred!")
    if not cfg.nfs_hosts:
        log.warning("dirs.nfs.skipped", reason="no NFS host configured")
        return errors
    if len(cfg.nfs_root_dirs) != len(cfg.nfs_hosts):
        log.warning(
            "dirs.nfs.skipped",
            reason="nfs_root_dirs does not have one entry per NFS host",
        )
        return errors

    host_count = len(cfg.nfs_hosts)
    can_set_quota = all(
        len(values) == host_count and all(values)
        for values in (
            cfg.quota_nfs_softlimits,
            cfg.quota_nfs_hardlimits,
            cfg.nfs_filesystems,
        )
    )
    if not can_set_quota:
        log.warning("dirs.nfs.quota_skipped", reason=QUOTA_NOT_CONFIGURED)

    for index, host in enumerate(cfg.nfs_hosts):
        directory = f"{cfg.nfs_root_dirs[index]}/{user.group.nfs_dir}/{user.username}"
        log.info("dirs.nfs.connecting", host=host)
        try:
            with SshSession.for_host(host, credentials, cfg) as session:
                mkdir_code, _ = run_remote_command(session, mkdir_command(directory))
                if mkdir_code == 0:
                    chown_code, _ = run_remote_command(
                        session,
                        chown_command(directory, user.username, user.group.value),
                    )
                    errors.add_if(
                        chown_code != 0,
                        f"NFS host {host} did not return with exit code 0 "
                        "during ownership change!",
                    )
                    if chown_code == 0:
                        log.info("dirs.nfs.created", host=host, directory=directory)
                else:
                    errors.add(
                        f"NFS host {host} did not return with exit code 0 "
                        "during directory creation!",
                    )

                if can_set_quota:
                    quota_code, _ = run_remote_command(
                        session,
                        setquota_command(
                            user.username,
                            cfg.quota_nfs_softlimits[index],
                            cfg.quota_nfs_hardlimits[index],
                            cfg.nfs_filesystems[index],
                        ),
                    )
                    errors.add_if(
                        quota_code != 0,
                        f"NFS host {host} did not return with exit code 0 "
                        "during quota setup!",
                    )
        except MissingCredential:
            raise
        except UsermgmtError as exc:
            log.warning("dirs.nfs.host_failed", host=host, error=str(exc))
            errors.add(f"Could not run commands on NFS host {host}: {exc}")

    return errors


def handle_home(
    user: NewUser,
    cfg: Settings,
    credentials: SshCredentials,
) -> ResultAggregator:
    """Create ``/home/<user>`` on the home host and set its quota."""
    errors = ResultAggregator(
        f"Errors during home directory creation occurred on host {cfg.home_host}",
    )
    if not cfg.home_host:
        log.warning("dirs.home.skipped", reason="no home host configured")
        return errors

    can_set_quota = _quota_configured(
        cfg.quota_home_softlimit, cfg.quota_home_hardlimit, cfg.home_filesystem,
    )
    if not can_set_quota:
        log.warning("dirs.home.quota_skipped", reason=QUOTA_NOT_CONFIGURED)

    directory = f"/home/{user.username}"
    log.info("dirs.home.connecting", host=cfg.home_host)
    try:
        with SshSession.for_host(cfg.home_host, credentials, cfg) as session:
            if cfg.use_homedir_helper:
                create = mkhomedir_command(user.username)
            else:
                create = mkdir_command(directory)
            mkdir_code, _ = run_remote_command(session, create)

            if mkdir_code == 0:
                chown_code, _ = run_remote_command(
                    session,
                    chown_command(directory, user.username, user.group.value),
                )
                errors.add_if(
                    chown_code != 0,
                    "Home host did not return with exit code 0 during ownership change!",
                )
                if chown_code == 0:
                    log.info("dirs.home.created", directory=directory)
            else:
                errors.add(
                    "Home host did not return with exit code 0 during directory creation!",
                )

            if can_set_quota:
                quota_code, _ = run_remote_command(
                    session,
                    setquota_command(
                        user.username,
                        cfg.quota_home_softlimit,
                        cfg.quota_home_hardlimit,
                        cfg.home_filesystem,
                    ),
                )
                errors.add_if(
                    quota_code != 0,
                    "Home host did not return with exit code 0 "
                    f"(actual exit code: {quota_code}) during quota setup!",
                )
    except MissingCredential:
        raise
    except UsermgmtError as exc:
        log.warning("dirs.home.host_failed", host=cfg.home_host, error=str(exc))
        errors.add(f"Could not run commands on home host {cfg.home_host}: {exc}")

    return errors


def add_user_directories(
    user: NewUser,
    cfg: Settings,
    credentials: SshCredentials,
) -> None:
    """Provision directories for ``user`` on every configured role.

    Raises:
        AggregatedPartialFailure: at least one role reported a failure. Each
            role's messages appear once, in the order compute nodes, NFS
            hosts, home host.
    """
    log.info("dirs.add.start", username=user.username)
    combined = ResultAggregator(
        f"Failed to create all directories for user {user.username}",
    )
    for handle in (handle_compute_nodes, handle_nfs, handle_home):
        role_errors = handle(user, cfg, credentials)
        try:
            role_errors.into_result()
        except AggregatedPartialFailure as exc:
            combined.add(str(exc))

    combined.into_result()
    log.info("dirs.add.done", username=user.username)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


def _nfs_dir_for(username: str) -> str:
    # Student accounts end in a digit
    if username and username[-1].isdigit():
        return Group.student.nfs_dir
    return Group.staff.nfs_dir


def _delete_on(
    host: str,
    directory: str,
    cfg: Settings,
    credentials: SshCredentials,
) -> bool:
    try:
        with SshSession.for_host(host, credentials, cfg) as session:
            exit_code, _ = run_remote_command(session, rm_command(directory))
    except MissingCredential:
        raise
    except UsermgmtError as exc:
        log.warning("dirs.delete.host_failed", host=host, error=str(exc))
        return False
    if exit_code != 0:
        log.warning(
            "dirs.delete.failed",
            host=host,
            directory=directory,
            exit_code=exit_code,
        )
        return False
    log.info("dirs.delete.done", host=host, directory=directory)
    return True


def delete_user_directories(
    username: str,
    cfg: Settings,
    credentials: SshCredentials,
) -> bool:
    """Remove the user's directories from the home host, NFS hosts and compute nodes.

    Failures are logged as warnings and never raised. Returns True when
    every configured removal succeeded.
    """
    all_ok = True

    if cfg.home_host:
        all_ok &= _delete_on(cfg.home_host, f"/home/{username}", cfg, credentials)
    else:
        log.warning("dirs.delete.home_skipped", reason="no home host configured")

    if cfg.nfs_hosts and len(cfg.nfs_root_dirs) == len(cfg.nfs_hosts):
        group_dir = _nfs_dir_for(username)
        for host, root in zip(cfg.nfs_hosts, cfg.nfs_root_dirs):
            all_ok &= _delete_on(
                host, f"{root}/{group_dir}/{username}", cfg, credentials,
            )
    else:
        log.warning("dirs.delete.nfs_skipped", reason="NFS hosts not configured")

    if cfg.compute_nodes and cfg.compute_node_root_dir:
        for node in cfg.compute_nodes:
            all_ok &= _delete_on(
                node, f"{cfg.compute_node_root_dir}/{username}", cfg, credentials,
            )
    else:
        log.warning(
            "dirs.delete.compute_skipped",
            reason="compute nodes or their root directory not configured",
        )

    return all_ok
