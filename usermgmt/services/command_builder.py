"""Builder for sacctmgr invocations.

A builder holds one or more sub-commands for one user. Rendering produces
either shell strings for remote execution or process descriptions for local
execution; both come from the same argument vectors.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Mapping, Sequence, Union

from usermgmt.models.commands import LocalCommand

SACCTMGR_NAME = "sacctmgr"
IMMEDIATE = "--immediate"
PARSEABLE = "--parsable"

SUB_COMMAND_ADD = "add"
SUB_COMMAND_DELETE = "delete"
SUB_COMMAND_MODIFY = "modify"
SUB_COMMAND_SHOW = "show"

SET = "set"
ASSOCIATION = "assoc"
USER = "User"
ACCOUNT = "Account"
DEFAULT_QOS = "DefaultQOS"
QOS = "QOS"
SHOW_FORMAT = f"format={USER}%30,{ACCOUNT},{DEFAULT_QOS},{QOS}%80"


# ---------------------------------------------------------------------------
# Sub-commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Add:
    group: str

    def render(self, username: str) -> list[str]:
        return [SUB_COMMAND_ADD, USER, username, f"{ACCOUNT}={self.group}"]


@dataclass(frozen=True)
class Delete:
    def render(self, username: str) -> list[str]:
        return [SUB_COMMAND_DELETE, USER, username]


@dataclass(frozen=True)
class Modify:
    # Insertion order is kept: sacctmgr checks DefaultQOS against the QOS
    # list given before it in the same invocation.
    values: Mapping[str, Sequence[str]] = field(default_factory=dict)

    def render(self, username: str) -> list[str]:
        to_set = [f"{key}={','.join(vals)}" for key, vals in self.values.items()]
        return [SUB_COMMAND_MODIFY, USER, username, SET, *to_set]


@dataclass(frozen=True)
class Show:
    parseable: bool = False

    def render(self, username: str) -> list[str]:
        args = [PARSEABLE] if self.parseable else []
        args.extend([SUB_COMMAND_SHOW, ASSOCIATION, SHOW_FORMAT])
        return args


SubCommand = Union[Add, Delete, Modify, Show]


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class CommandBuilder:
    """One or more sacctmgr sub-commands for one user."""

    def __init__(self, username: str, sub_commands: list[SubCommand]) -> None:
        self.username = username
        self.sub_commands = list(sub_commands)
        self._immediate = False
        self._sacctmgr_path = SACCTMGR_NAME

    # ── constructors ──────────────────────────────────────────────────

    @classmethod
    def new_add(
        cls,
        username: str,
        group: str,
        default_qos: str,
        qos: Sequence[str],
    ) -> "CommandBuilder":
        """Add the user, then set QOS and default QOS in a single modify."""
        return cls(
            username,
            [Add(group=str(group)), cls._qos_modify(default_qos, qos)],
        )

    @classmethod
    def new_delete(cls, username: str) -> "CommandBuilder":
        return cls(username, [Delete()])

    @classmethod
    def new_modify(
        cls,
        username: str,
        values: Mapping[str, Sequence[str]],
    ) -> "CommandBuilder":
        return cls(username, [Modify(values=dict(values))])

    @classmethod
    def new_modify_qos_default_qos(
        cls,
        username: str,
        default_qos: str,
        qos: Sequence[str],
    ) -> "CommandBuilder":
        return cls(username, [cls._qos_modify(default_qos, qos)])

    @classmethod
    def new_show(cls, parseable: bool) -> "CommandBuilder":
        return cls("", [Show(parseable=parseable)])

    @staticmethod
    def _qos_modify(default_qos: str, qos: Sequence[str]) -> Modify:
        return Modify(values={QOS: list(qos), DEFAULT_QOS: [default_qos]})

    # ── options ───────────────────────────────────────────────────────

    def immediate(self, immediate: bool) -> "CommandBuilder":
        self._immediate = immediate
        return self

    def sacctmgr_path(self, path: str) -> "CommandBuilder":
        self._sacctmgr_path = path
        return self

    @property
    def path(self) -> str:
        return self._sacctmgr_path

    # ── rendering ─────────────────────────────────────────────────────

    def argument_vectors(self) -> list[list[str]]:
        """Arguments after the executable, one list per sub-command."""
        vectors: list[list[str]] = []
        for sub_command in self.sub_commands:
            args = sub_command.render(self.username)
            if self._immediate:
                args.append(IMMEDIATE)
            vectors.append(args)
        return vectors

    def remote_commands(self) -> list[str]:
        return [
            " ".join(shlex.quote(part) for part in [self._sacctmgr_path, *args])
            for args in self.argument_vectors()
        ]

    def local_commands(self) -> list[LocalCommand]:
        return [
            LocalCommand(program=self._sacctmgr_path, args=tuple(args))
            for args in self.argument_vectors()
        ]
