"""User endpoints.

Adding, deleting and modifying run as background jobs; poll them through
``/jobs/{job_id}``. Listing runs inline.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from usermgmt.auth import get_settings, require_api_key
from usermgmt.config import Settings
from usermgmt.exceptions import UsermgmtError, format_error_chain
from usermgmt.models.jobs import JobStatus
from usermgmt.models.users import (
    ListUsersResponse,
    NewUser,
    OnWhichSystemRequest,
    SshLogin,
    UserAddRequest,
    UserChanges,
    UserDeleteRequest,
    UserModifyRequest,
)
from usermgmt.services import operations
from usermgmt.services.background import job_registry
from usermgmt.services.credentials import (
    GivenSshCredential,
    ReadonlySshCredential,
    SshCredentials,
)
from usermgmt.services.directory_service import DirectoryService

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_api_key)],
)


def get_directory_service(request: Request) -> Optional[DirectoryService]:
    """Directory backend installed on ``app.state``, if any."""
    return getattr(request.app.state, "directory_service", None)


def _credentials(login: Optional[SshLogin], cfg: Settings) -> SshCredentials:
    if login is None:
        return ReadonlySshCredential(cfg)
    return GivenSshCredential(
        login.username,
        login.password,
        key_path=cfg.ssh_key_path,
    )


def _systems(req: OnWhichSystemRequest, cfg: Settings) -> operations.OnWhichSystem:
    return operations.OnWhichSystem.from_config(
        cfg,
        ldap=req.ldap,
        slurm=req.slurm,
        dirs=req.dirs,
    )


# ── Mutations ─────────────────────────────────────────────────────────────


@router.post("", response_model=JobStatus, status_code=status.HTTP_202_ACCEPTED)
async def add_user(
    req: UserAddRequest,
    cfg: Settings = Depends(get_settings),
    directory: Optional[DirectoryService] = Depends(get_directory_service),
) -> JobStatus:
    """Submit a job creating the user on the selected systems."""
    try:
        user = NewUser.from_request(req, cfg)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    systems = _systems(req.systems, cfg)
    credentials = _credentials(req.ssh, cfg)
    return job_registry.submit(
        "add",
        lambda: operations.add_user(user, systems, cfg, credentials, directory),
        username=user.username,
    )


@router.delete(
    "/{username}",
    response_model=JobStatus,
    status_code=status.HTTP_202_ACCEPTED,
)
async def delete_user(
    username: str,
    req: Optional[UserDeleteRequest] = None,
    cfg: Settings = Depends(get_settings),
    directory: Optional[DirectoryService] = Depends(get_directory_service),
) -> JobStatus:
    """Submit a job removing the user from the selected systems."""
    req = req or UserDeleteRequest()
    systems = _systems(req.systems, cfg)
    credentials = _credentials(req.ssh, cfg)
    return job_registry.submit(
        "delete",
        lambda: operations.delete_user(username, systems, cfg, credentials, directory),
        username=username,
    )


@router.patch(
    "/{username}",
    response_model=JobStatus,
    status_code=status.HTTP_202_ACCEPTED,
)
async def modify_user(
    username: str,
    req: UserModifyRequest,
    cfg: Settings = Depends(get_settings),
    directory: Optional[DirectoryService] = Depends(get_directory_service),
) -> JobStatus:
    try:
        changes = UserChanges.from_request(username, req, cfg)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    systems = _systems(req.systems, cfg)
    credentials = _credentials(req.ssh, cfg)
    return job_registry.submit(
        "modify",
        lambda: operations.modify_user(changes, systems, cfg, credentials, directory),
        username=username,
    )


# ── Listing ───────────────────────────────────────────────────────────────


@router.get("", response_model=ListUsersResponse)
async def list_users(
    ldap: Optional[bool] = None,
    slurm: Optional[bool] = None,
    cfg: Settings = Depends(get_settings),
    directory: Optional[DirectoryService] = Depends(get_directory_service),
) -> ListUsersResponse:
    """List users with the read-only login from the configuration."""
    systems = operations.OnWhichSystem.from_config(cfg, ldap=ldap, slurm=slurm, dirs=False)
    credentials = ReadonlySshCredential(cfg)
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            None,
            lambda: operations.list_users(systems, cfg, credentials, directory),
        )
    except UsermgmtError as exc:
        raise HTTPException(status_code=502, detail=format_error_chain(exc)) from exc
