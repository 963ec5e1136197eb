"""Command-related data structures."""

from __future__ import annotations

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Outcome of one command run locally or over SSH."""

    command: str
    output: str
    exit_code: int = 0

    @property
    def failed(self) -> bool:
        return self.exit_code != 0


class LocalCommand(BaseModel):
    """Process invocation for one rendered sacctmgr argument vector."""

    model_config = {"frozen": True}

    program: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return " ".join(self.argv)
