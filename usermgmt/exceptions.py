"""Exceptions raised by usermgmt operations."""

from __future__ import annotations


class UsermgmtError(Exception):
    """Base exception for usermgmt operations."""
    pass


class MissingCredential(UsermgmtError):
    """A username, password or key choice could not be resolved."""
    pass


class ConnectFailed(UsermgmtError):
    """TCP connect or SSH handshake to an endpoint failed."""
    pass


class AuthFailed(UsermgmtError):
    """Every applicable authentication strategy failed.

    Raised once per session; the individual strategy failures are logged
    and do not surface on their own.
    """
    pass


class RemoteExecFailed(UsermgmtError):
    """Opening a channel, running a command or reading its output failed."""
    pass


class LocalExecFailed(UsermgmtError):
    """A local process could not be spawned."""
    pass


class NonZeroExit(UsermgmtError):
    """A command ran but returned a failure status."""

    def __init__(self, command: str, exit_code: int, output: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            f"Command '{command}' returned exit code {exit_code}",
        )


class AggregatedPartialFailure(UsermgmtError):
    """One or more per-target failures collected without aborting."""

    def __init__(self, base_message: str, failures: list[str]) -> None:
        self.base_message = base_message
        self.failures = list(failures)
        super().__init__("\n".join([base_message, *self.failures]))


def format_error_chain(exc: BaseException) -> str:
    """Render an exception and every cause behind it, outermost first."""
    lines: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        prefix = "Error" if not lines else "Caused by"
        lines.append(f"{prefix}: {text}")
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )
    return "\n".join(lines)
