"""SSH credential sources.

Usernames and passwords are resolved lazily and at most once per credential
object; later calls return the cached value even if the first login attempt
with it failed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import typer

from usermgmt.config import Settings, settings
from usermgmt.exceptions import MissingCredential
from usermgmt.utils.logging import get_logger

log = get_logger(__name__)

PUBLIC_KEY_SUFFIX = ".pub"


@dataclass(frozen=True)
class SshKeyPair:
    """Public/private key file locations derived from one path."""

    public_key: Path
    private_key: Path

    @classmethod
    def from_one_path(cls, path: str | Path) -> "SshKeyPair":
        private_key = Path(path)
        if private_key.suffix == PUBLIC_KEY_SUFFIX:
            public_key = private_key
        else:
            public_key = private_key.with_suffix(PUBLIC_KEY_SUFFIX)
        return cls(public_key=public_key, private_key=private_key)


@dataclass(frozen=True)
class KeySuggestion:
    """An identity offered by the SSH agent, as shown to whoever picks one."""

    comment: str
    fingerprint: str = ""


class SshCredentials(ABC):
    """What a remote session needs to authenticate."""

    @abstractmethod
    def username(self) -> str: ...

    @abstractmethod
    def password(self) -> str: ...

    def key_pair(self) -> Optional[SshKeyPair]:
        return None

    def resolve_agent_choice(self, candidates: list[KeySuggestion]) -> int:
        raise MissingCredential(
            "No way to choose between several keys of the ssh agent",
        )


class InteractiveSshCredential(SshCredentials):
    """Asks for username and password on the terminal the first time they are needed."""

    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        key_path: str | Path | None = None,
        prompt: Callable[..., object] = typer.prompt,
        echo: Callable[[str], None] = typer.echo,
    ) -> None:
        self._cfg = cfg or settings
        self._prompt = prompt
        self._echo = echo
        self._username: Optional[str] = None
        self._password: Optional[str] = None
        path = key_path or self._cfg.ssh_key_path
        self._key_pair = SshKeyPair.from_one_path(path) if path else None

    def username(self) -> str:
        """Given username, or the configured default when left blank."""
        if self._username is None:
            answer = str(
                self._prompt(
                    "Enter your SSH username",
                    default=self._cfg.default_ssh_user,
                ),
            ).strip()
            answer = answer or self._cfg.default_ssh_user
            if not answer:
                raise MissingCredential("No SSH username provided")
            self._username = answer
        return self._username

    def password(self) -> str:
        if self._password is None:
            answer = str(
                self._prompt(
                    "Enter your SSH password",
                    default="",
                    hide_input=True,
                    show_default=False,
                ),
            )
            if not answer:
                raise MissingCredential("No password provided")
            self._password = answer
        return self._password

    def key_pair(self) -> Optional[SshKeyPair]:
        return self._key_pair

    def resolve_agent_choice(self, candidates: list[KeySuggestion]) -> int:
        last_index = max(len(candidates) - 1, 0)
        self._echo("Found more than one key in ssh agent !")
        self._echo(f"Choose one between 0 and {last_index} ssh key")
        self._echo("===========================================")
        for index, key in enumerate(candidates):
            self._echo(f"{index} => comment: {key.comment}")

        answer = str(self._prompt("Key number", default="")).strip()
        if not answer:
            raise MissingCredential("No number supplied")
        try:
            choice = int(answer)
        except ValueError:
            raise MissingCredential(f"'{answer}' is not a number") from None
        if not 0 <= choice <= last_index:
            raise MissingCredential(f"Choice should be between 0 and {last_index}")
        log.info("ssh.agent_key_chosen", index=choice)
        return choice


class GivenSshCredential(SshCredentials):
    """Username and password handed over by the caller, e.g. an API request."""

    def __init__(
        self,
        username: str,
        password: str,
        *,
        key_path: str | Path | None = None,
        agent_choice: int = 0,
    ) -> None:
        self._username = username
        self._password = password
        self._key_pair = SshKeyPair.from_one_path(key_path) if key_path else None
        self._agent_choice = agent_choice

    def username(self) -> str:
        if not self._username:
            raise MissingCredential("No SSH username provided")
        return self._username

    def password(self) -> str:
        if not self._password:
            raise MissingCredential("No SSH password provided")
        return self._password

    def key_pair(self) -> Optional[SshKeyPair]:
        return self._key_pair

    def resolve_agent_choice(self, candidates: list[KeySuggestion]) -> int:
        return self._agent_choice


class ReadonlySshCredential(SshCredentials):
    """Login taken from the configuration, used for listing users."""

    def __init__(self, cfg: Settings | None = None) -> None:
        self._cfg = cfg or settings
        self._key_pair = (
            SshKeyPair.from_one_path(self._cfg.ssh_key_path)
            if self._cfg.ssh_key_path
            else None
        )

    def username(self) -> str:
        if not self._cfg.default_ssh_user:
            raise MissingCredential("No default SSH user configured")
        return self._cfg.default_ssh_user

    def password(self) -> str:
        if not self._cfg.ssh_password:
            raise MissingCredential("No SSH password configured for read-only access")
        return self._cfg.ssh_password

    def key_pair(self) -> Optional[SshKeyPair]:
        return self._key_pair
