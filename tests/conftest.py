"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("USERMGMT_HEAD_NODE", "head")
os.environ.setdefault("USERMGMT_API_KEY", "")
os.environ.setdefault("USERMGMT_SSH_AGENT", "false")
os.environ.setdefault("USERMGMT_LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient

from tests.mock_ssh import FakeSessionFactory
from usermgmt.config import Settings
from usermgmt.services.credentials import GivenSshCredential
from usermgmt.utils.logging import reset_logging


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Each test starts with unconfigured logging."""
    yield
    reset_logging()


@pytest.fixture
def cfg() -> Settings:
    """Settings independent of the environment and any .env file."""
    return Settings(
        _env_file=None,
        head_node="head",
        run_slurm_remote=True,
        sacctmgr_path="/usr/bin/sacctmgr",
        compute_nodes=["node-a", "node-b"],
        compute_node_root_dir="/disk/users",
        filesystem="/disk",
        nfs_hosts=["nfs-1"],
        nfs_root_dirs=["/srv/nfs"],
        nfs_filesystems=["/srv"],
        quota_nfs_softlimits=["50G"],
        quota_nfs_hardlimits=["55G"],
        home_host="home",
        home_filesystem="/home",
    )


@pytest.fixture
def credentials() -> GivenSshCredential:
    return GivenSshCredential("admin", "secret")


@pytest.fixture
def fake_sessions(monkeypatch) -> FakeSessionFactory:
    """Replace SshSession everywhere a workflow opens one."""
    import usermgmt.services.directories as dirs_mod
    import usermgmt.services.operations as ops_mod

    factory = FakeSessionFactory()
    monkeypatch.setattr(dirs_mod, "SshSession", factory)
    monkeypatch.setattr(ops_mod, "SshSession", factory)
    return factory


@pytest.fixture
def job_registry(monkeypatch):
    """Fresh job registry patched into the routers."""
    import usermgmt.routers.jobs as jobs_router
    import usermgmt.routers.users as users_router
    from usermgmt.services.background import JobRegistry

    registry = JobRegistry()
    monkeypatch.setattr(users_router, "job_registry", registry)
    monkeypatch.setattr(jobs_router, "job_registry", registry)
    yield registry
    registry.shutdown()


@pytest.fixture
async def client(cfg, fake_sessions, job_registry):
    """Async test client with fake SSH sessions and test settings injected."""
    from usermgmt.auth import get_settings
    from usermgmt.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_settings] = lambda: cfg
    fastapi_app.state.directory_service = None

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
