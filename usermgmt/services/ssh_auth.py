"""Authentication of a freshly handshaken SSH transport.

Strategies run in order until one authenticates the transport:

1. ssh agent (only when enabled in the configuration)
2. key file, with the password as passphrase (only when a key path is set)
3. username and password

A failing strategy is logged and the next one is tried. Only when the last
one fails too is ``AuthFailed`` raised.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import paramiko

from usermgmt.exceptions import AuthFailed, MissingCredential
from usermgmt.services.credentials import KeySuggestion, SshCredentials, SshKeyPair
from usermgmt.utils.logging import get_logger

log = get_logger(__name__)


class StrategyFailed(Exception):
    """A single strategy could not authenticate; the next one is tried."""


# Errors a strategy may hit without ending the whole attempt
_RECOVERABLE: tuple[type[BaseException], ...] = (
    StrategyFailed,
    paramiko.SSHException,
    paramiko.UnknownKeyType,
    OSError,
    ValueError,
)


class AuthStrategy:
    """One way to authenticate, bound to a name for logging."""

    __slots__ = ("name", "_run")

    def __init__(
        self,
        name: str,
        run: Callable[[paramiko.Transport, SshCredentials, str], None],
    ) -> None:
        self.name = name
        self._run = run

    def __call__(
        self,
        transport: paramiko.Transport,
        credentials: SshCredentials,
        username: str,
    ) -> None:
        self._run(transport, credentials, username)

    def __repr__(self) -> str:
        return f"AuthStrategy({self.name!r})"


# ── agent ────────────────────────────────────────────────────────────────


def open_agent() -> paramiko.Agent:
    return paramiko.Agent()


def _suggestion(key: paramiko.PKey) -> KeySuggestion:
    return KeySuggestion(
        comment=str(getattr(key, "comment", "") or ""),
        fingerprint=key.get_fingerprint().hex(),
    )


def _auth_agent(
    transport: paramiko.Transport,
    credentials: SshCredentials,
    username: str,
) -> None:
    agent = open_agent()
    try:
        keys = list(agent.get_keys())
        if not keys:
            raise StrategyFailed("No keys could be found on the ssh agent.")
        if len(keys) == 1:
            chosen = keys[0]
        else:
            try:
                index = credentials.resolve_agent_choice(
                    [_suggestion(key) for key in keys],
                )
            except MissingCredential as exc:
                raise StrategyFailed(str(exc)) from exc
            # An index outside the list breaks the resolver's contract
            if not 0 <= index < len(keys):
                raise IndexError(
                    f"agent key choice {index} outside of 0..{len(keys) - 1}",
                )
            chosen = keys[index]

        log.info("ssh.agent_key", comment=_suggestion(chosen).comment)
        transport.auth_publickey(username, chosen)
    finally:
        agent.close()


# ── key file ─────────────────────────────────────────────────────────────


def load_private_key(path: Path, passphrase: str | None) -> paramiko.PKey:
    return paramiko.PKey.from_path(path, passphrase=passphrase)


def _check_public_half(key_pair: SshKeyPair, private: paramiko.PKey) -> None:
    if not key_pair.public_key.is_file() or key_pair.public_key == key_pair.private_key:
        return
    blob = paramiko.PublicBlob.from_file(str(key_pair.public_key))
    if blob.key_blob != private.asbytes():
        raise StrategyFailed(
            f"Public key {key_pair.public_key} does not belong to "
            f"private key {key_pair.private_key}",
        )


def _key_file_strategy(key_pair: SshKeyPair) -> AuthStrategy:
    def run(
        transport: paramiko.Transport,
        credentials: SshCredentials,
        username: str,
    ) -> None:
        private = load_private_key(key_pair.private_key, credentials.password())
        _check_public_half(key_pair, private)
        transport.auth_publickey(username, private)

    return AuthStrategy("key_file", run)


# ── password ─────────────────────────────────────────────────────────────


def _auth_password(
    transport: paramiko.Transport,
    credentials: SshCredentials,
    username: str,
) -> None:
    transport.auth_password(username, credentials.password())


# ── orchestration ────────────────────────────────────────────────────────


def applicable_strategies(
    credentials: SshCredentials,
    *,
    use_agent: bool,
) -> list[AuthStrategy]:
    """Strategies to try, in order, for these credentials."""
    strategies: list[AuthStrategy] = []
    if use_agent:
        strategies.append(AuthStrategy("agent", _auth_agent))
    key_pair = credentials.key_pair()
    if key_pair is not None:
        strategies.append(_key_file_strategy(key_pair))
    strategies.append(AuthStrategy("password", _auth_password))
    return strategies


def authenticate(
    transport: paramiko.Transport,
    credentials: SshCredentials,
    *,
    use_agent: bool,
    host: str = "",
) -> str:
    """Authenticate ``transport`` and return the name of the strategy that worked.

    Raises:
        MissingCredential: username or password could not be resolved.
        AuthFailed: every applicable strategy failed.
    """
    username = credentials.username()
    last_error: BaseException | None = None

    for strategy in applicable_strategies(credentials, use_agent=use_agent):
        log.debug("ssh.auth_attempt", host=host, strategy=strategy.name)
        try:
            strategy(transport, credentials, username)
        except _RECOVERABLE as exc:
            log.warning(
                "ssh.auth_strategy_failed",
                host=host,
                strategy=strategy.name,
                username=username,
                error=str(exc),
            )
            last_error = exc
            continue

        if transport.is_authenticated():
            log.info(
                "ssh.authenticated",
                host=host,
                strategy=strategy.name,
                username=username,
            )
            return strategy.name

        log.warning(
            "ssh.auth_incomplete",
            host=host,
            strategy=strategy.name,
            username=username,
        )
        last_error = StrategyFailed(f"{strategy.name} authentication was only partial")

    raise AuthFailed(
        f"Authentication has failed for user {username} on host {host}",
    ) from last_error
