"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TargetEndpoint(BaseModel):
    """A host commands are executed on."""

    model_config = {"frozen": True}

    host: str
    port: int = 22
    run_remote: bool = True


class Settings(BaseSettings):
    """All configuration is driven by USERMGMT_* environment variables."""

    # Which systems an action touches unless overridden per call
    include_ldap: bool = False
    include_slurm: bool = True
    include_dir_mgmt: bool = False

    # SSH
    head_node: str = ""
    ssh_port: int = 22
    ssh_timeout_seconds: float = 6.0
    ssh_agent: bool = False
    ssh_key_path: Optional[str] = None
    default_ssh_user: str = "root"
    ssh_password: str = ""

    # Slurm
    sacctmgr_path: str = "/usr/local/bin/sacctmgr"
    run_slurm_remote: bool = False

    # Groups and quality of service
    student_gid: int = 1002
    staff_gid: int = 1001
    faculty_gid: int = 1000
    student_default_qos: str = "basic"
    staff_default_qos: str = "advanced"
    student_qos: list[str] = Field(default_factory=lambda: ["interactive", "basic"])
    staff_qos: list[str] = Field(default_factory=lambda: ["interactive", "advanced"])
    valid_qos: list[str] = Field(
        default_factory=lambda: ["interactive", "basic", "advanced"],
    )

    # Compute nodes
    compute_nodes: list[str] = Field(default_factory=list)
    compute_node_root_dir: str = ""
    filesystem: str = ""
    quota_softlimit: str = "200G"
    quota_hardlimit: str = "220G"

    # NFS hosts (lists are matched by position)
    nfs_hosts: list[str] = Field(default_factory=list)
    nfs_root_dirs: list[str] = Field(default_factory=list)
    nfs_filesystems: list[str] = Field(default_factory=list)
    quota_nfs_softlimits: list[str] = Field(default_factory=list)
    quota_nfs_hardlimits: list[str] = Field(default_factory=list)

    # Home host
    home_host: str = ""
    home_filesystem: str = ""
    quota_home_softlimit: str = "2G"
    quota_home_hardlimit: str = "3G"
    use_homedir_helper: bool = True

    # API key for the HTTP surface
    api_key: str = ""

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_prefix="USERMGMT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def endpoint_for(self, host: str) -> TargetEndpoint:
        return TargetEndpoint(
            host=host,
            port=self.ssh_port,
            run_remote=self.run_slurm_remote,
        )

    @property
    def head_node_endpoint(self) -> TargetEndpoint:
        return self.endpoint_for(self.head_node)


# Singleton – import this from anywhere
settings = Settings()
