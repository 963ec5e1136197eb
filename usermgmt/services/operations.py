"""User workflows across LDAP, Slurm and user directories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from usermgmt.config import Settings, settings
from usermgmt.exceptions import UsermgmtError
from usermgmt.models.users import ListUsersResponse, NewUser, UserChanges
from usermgmt.services import directories, slurm
from usermgmt.services.credentials import SshCredentials
from usermgmt.services.directory_service import DirectoryService
from usermgmt.services.ssh_session import SshSession
from usermgmt.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class OnWhichSystem:
    """Systems an action is performed on."""

    ldap: bool
    slurm: bool
    dirs: bool

    @classmethod
    def from_config(
        cls,
        cfg: Settings | None = None,
        *,
        ldap: Optional[bool] = None,
        slurm: Optional[bool] = None,
        dirs: Optional[bool] = None,
    ) -> "OnWhichSystem":
        """Explicit values win over the configured defaults."""
        _cfg = cfg or settings
        return cls(
            ldap=_cfg.include_ldap if ldap is None else ldap,
            slurm=_cfg.include_slurm if slurm is None else slurm,
            dirs=_cfg.include_dir_mgmt if dirs is None else dirs,
        )


def _require_directory(
    systems: OnWhichSystem,
    directory: Optional[DirectoryService],
) -> None:
    if systems.ldap and directory is None:
        raise UsermgmtError(
            "LDAP was selected but no directory service is configured",
        )


def _head_node_session(
    systems: OnWhichSystem,
    cfg: Settings,
    credentials: SshCredentials,
) -> SshSession:
    """Session to the head node, connected up front when Slurm runs remotely.

    Connecting before LDAP is touched lets a wrong SSH login abort the
    workflow before anything was changed.
    """
    session = SshSession.from_head_node(credentials, cfg)
    if systems.slurm and cfg.run_slurm_remote:
        session.establish()
    return session


def add_user(
    user: NewUser,
    systems: OnWhichSystem,
    cfg: Settings,
    credentials: SshCredentials,
    directory: Optional[DirectoryService] = None,
) -> None:
    """Create ``user`` in LDAP, then Slurm, then its directories."""
    log.info("user.add.start", username=user.username, systems=systems)
    _require_directory(systems, directory)

    with _head_node_session(systems, cfg, credentials) as session:
        if systems.ldap:
            directory.add_user(user)
            log.info("ldap.user_added", username=user.username)
        if systems.slurm:
            slurm.add_slurm_user(user, cfg, session)

    if systems.dirs:
        directories.add_user_directories(user, cfg, credentials)

    log.info("user.add.done", username=user.username)


def delete_user(
    username: str,
    systems: OnWhichSystem,
    cfg: Settings,
    credentials: SshCredentials,
    directory: Optional[DirectoryService] = None,
) -> None:
    log.info("user.delete.start", username=username, systems=systems)
    _require_directory(systems, directory)

    with _head_node_session(systems, cfg, credentials) as session:
        if systems.ldap:
            directory.delete_user(username)
            log.info("ldap.user_deleted", username=username)
        if systems.slurm:
            slurm.delete_slurm_user(username, cfg, session)

    if systems.dirs:
        directories.delete_user_directories(username, cfg, credentials)

    log.info("user.delete.done", username=username)


def modify_user(
    changes: UserChanges,
    systems: OnWhichSystem,
    cfg: Settings,
    credentials: SshCredentials,
    directory: Optional[DirectoryService] = None,
) -> None:
    """Apply ``changes`` to LDAP and Slurm; directories are left alone."""
    log.info("user.modify.start", username=changes.username, systems=systems)
    _require_directory(systems, directory)

    with _head_node_session(systems, cfg, credentials) as session:
        if systems.ldap:
            directory.modify_user(changes)
            log.info("ldap.user_modified", username=changes.username)
        if systems.slurm:
            slurm.modify_slurm_user(changes, cfg, session)

    log.info("user.modify.done", username=changes.username)


def list_users(
    systems: OnWhichSystem,
    cfg: Settings,
    credentials: SshCredentials,
    directory: Optional[DirectoryService] = None,
    *,
    parsed: bool = True,
) -> ListUsersResponse:
    """Slurm associations and the LDAP listing.

    With ``parsed`` the Slurm table is also returned as headers and rows;
    otherwise only sacctmgr's human readable table is kept in ``slurm_raw``.
    """
    _require_directory(systems, directory)
    response = ListUsersResponse()

    with _head_node_session(systems, cfg, credentials) as session:
        if systems.ldap:
            response.ldap = directory.list_users()
        if systems.slurm and parsed:
            response.slurm, response.slurm_raw = slurm.list_slurm_users_parsed(
                cfg, session,
            )
        elif systems.slurm:
            response.slurm_raw = slurm.list_slurm_users(cfg, session)

    return response
