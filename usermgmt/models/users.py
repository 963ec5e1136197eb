"""User account models shared by the workflows, the API and the CLI."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from usermgmt.config import Settings


class Group(str, Enum):
    staff = "staff"
    student = "student"
    faculty = "faculty"

    @classmethod
    def parse(cls, value: str) -> "Group":
        """Accept lower or title case group names."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"given group name ({value}) is not valid") from None

    def gid(self, cfg: Settings) -> int:
        return {
            Group.staff: cfg.staff_gid,
            Group.student: cfg.student_gid,
            Group.faculty: cfg.faculty_gid,
        }[self]

    def default_qos(self, cfg: Settings) -> str:
        if self is Group.student:
            return cfg.student_default_qos
        return cfg.staff_default_qos

    def qos(self, cfg: Settings) -> list[str]:
        if self is Group.student:
            return list(cfg.student_qos)
        return list(cfg.staff_qos)

    @property
    def nfs_dir(self) -> str:
        return "students" if self is Group.student else "staff"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SshLogin(BaseModel):
    """SSH login supplied by an API caller."""

    username: str
    password: str


class OnWhichSystemRequest(BaseModel):
    """Per-call overrides; None falls back to the configuration."""

    ldap: Optional[bool] = None
    slurm: Optional[bool] = None
    dirs: Optional[bool] = None


class UserAddRequest(BaseModel):
    username: str = Field(min_length=1)
    firstname: str = Field(min_length=1)
    lastname: str = Field(min_length=1)
    mail: Optional[str] = None
    group: Optional[Group] = None
    default_qos: Optional[str] = None
    qos: list[str] = Field(default_factory=list)
    publickey: Optional[str] = None
    ssh: Optional[SshLogin] = None
    systems: OnWhichSystemRequest = Field(default_factory=OnWhichSystemRequest)

    @field_validator("group", mode="before")
    @classmethod
    def _parse_group(cls, value):
        if isinstance(value, str):
            return Group.parse(value)
        return value


class UserModifyRequest(BaseModel):
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    mail: Optional[str] = None
    default_qos: Optional[str] = None
    qos: list[str] = Field(default_factory=list)
    publickey: Optional[str] = None
    ssh: Optional[SshLogin] = None
    systems: OnWhichSystemRequest = Field(default_factory=OnWhichSystemRequest)


class UserDeleteRequest(BaseModel):
    ssh: Optional[SshLogin] = None
    systems: OnWhichSystemRequest = Field(default_factory=OnWhichSystemRequest)


# ---------------------------------------------------------------------------
# Resolved entities
# ---------------------------------------------------------------------------


def check_qos(qos: list[str], default_qos: str, cfg: Settings) -> None:
    """Raise ValueError unless every QOS is valid and includes the default."""
    invalid = [q for q in [*qos, default_qos] if q not in cfg.valid_qos]
    if invalid:
        raise ValueError(f"Given qos {invalid[0]} is none of the valid qoses")
    if default_qos not in qos:
        raise ValueError(
            f"Qos ({qos}) do not contain the default qos ({default_qos})",
        )


class NewUser(BaseModel):
    """Attributes needed to create a user in LDAP, Slurm and on disk."""

    username: str
    firstname: str
    lastname: str
    mail: Optional[str] = None
    group: Group
    gid: int
    default_qos: str
    qos: list[str]
    publickey: Optional[str] = None

    @classmethod
    def from_request(cls, req: UserAddRequest, cfg: Settings) -> "NewUser":
        """Fill group, gid and QOS defaults from the configuration.

        Raises ValueError if a QOS is not listed in ``valid_qos`` or the
        default QOS is not part of the QOS list.
        """
        group = req.group or Group.student
        qos = [q.strip() for q in req.qos if q.strip()] or group.qos(cfg)
        default_qos = (req.default_qos or "").strip() or group.default_qos(cfg)

        check_qos(qos, default_qos, cfg)

        return cls(
            username=req.username.strip(),
            firstname=req.firstname.strip(),
            lastname=req.lastname.strip(),
            mail=req.mail,
            group=group,
            gid=group.gid(cfg),
            default_qos=default_qos,
            qos=qos,
            publickey=req.publickey,
        )


class UserChanges(BaseModel):
    """Fields to change on an existing user; None means unchanged."""

    username: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    mail: Optional[str] = None
    default_qos: Optional[str] = None
    qos: Optional[list[str]] = None
    publickey: Optional[str] = None

    @model_validator(mode="after")
    def _qos_changed_together(self) -> "UserChanges":
        if (self.qos is None) != (self.default_qos is None):
            raise ValueError(
                "Qos and default Qos must be provided and changed together.",
            )
        return self

    @classmethod
    def from_request(
        cls,
        username: str,
        req: UserModifyRequest,
        cfg: Settings,
    ) -> "UserChanges":
        """Raises ValueError for an incomplete or invalid QOS change."""
        changes = cls(
            username=username,
            firstname=req.firstname,
            lastname=req.lastname,
            mail=req.mail,
            default_qos=req.default_qos,
            qos=req.qos or None,
            publickey=req.publickey,
        )
        changes.validate_qos(cfg)
        return changes

    def validate_qos(self, cfg: Settings) -> None:
        """Validate a QOS change against ``valid_qos``; no change passes."""
        qos_change = self.qos_and_default_qos()
        if qos_change is not None:
            check_qos(*qos_change, cfg)

    def qos_and_default_qos(self) -> tuple[list[str], str] | None:
        """Only set when both are changed together."""
        if self.qos is None or self.default_qos is None:
            return None
        return list(self.qos), self.default_qos


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class ListedUsers(BaseModel):
    """Parsed ``sacctmgr --parsable`` table."""

    headers: list[str]
    rows: list[list[str]] = []


class ListUsersResponse(BaseModel):
    slurm: Optional[ListedUsers] = None
    slurm_raw: str = ""
    ldap: Optional[str] = None
