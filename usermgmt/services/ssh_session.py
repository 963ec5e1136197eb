"""SSH session with lazy connect, one authentication attempt and connection reuse.

The first command (or an explicit ``establish()``) opens the TCP connection,
performs the handshake and runs the authentication strategies. The outcome
is memoized: a connected session reuses its transport for every further
command, a failed session re-raises the original error without retrying.

A session is not thread-safe. Run a whole workflow on one worker thread.
"""

from __future__ import annotations

import socket
from enum import Enum
from typing import Optional

import paramiko

from usermgmt.config import Settings, TargetEndpoint, settings
from usermgmt.exceptions import ConnectFailed, RemoteExecFailed, UsermgmtError
from usermgmt.services.credentials import SshCredentials
from usermgmt.services.ssh_auth import authenticate
from usermgmt.utils.logging import get_logger

log = get_logger(__name__)


class SessionState(str, Enum):
    not_connected = "not_connected"
    connected = "connected"
    failed = "failed"
    closed = "closed"


def open_transport(endpoint: TargetEndpoint, timeout: float) -> paramiko.Transport:
    """Connect over TCP and run the SSH handshake, both bounded by ``timeout``."""
    try:
        sock = socket.create_connection((endpoint.host, endpoint.port), timeout=timeout)
    except OSError as exc:
        raise ConnectFailed(
            f"Could not connect over tcp to endpoint: {endpoint.host} "
            f"over port: {endpoint.port}",
        ) from exc

    transport = paramiko.Transport(sock)
    try:
        transport.start_client(timeout=timeout)
    except (paramiko.SSHException, OSError, EOFError) as exc:
        transport.close()
        raise ConnectFailed(
            f"Could not perform ssh handshake with {endpoint.host}",
        ) from exc

    key = transport.get_remote_server_key()
    log.debug(
        "ssh.host_key",
        host=endpoint.host,
        key_type=key.get_name(),
        fingerprint=key.get_fingerprint().hex(),
    )
    return transport


class SshSession:
    """One reusable authenticated connection to one endpoint."""

    def __init__(
        self,
        endpoint: TargetEndpoint,
        credentials: SshCredentials,
        cfg: Settings | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self.endpoint = endpoint
        self.credentials = credentials
        self._timeout = self._cfg.ssh_timeout_seconds
        self._use_agent = self._cfg.ssh_agent
        self._state = SessionState.not_connected
        self._transport: Optional[paramiko.Transport] = None
        self._error: Optional[UsermgmtError] = None

    @classmethod
    def for_host(
        cls,
        host: str,
        credentials: SshCredentials,
        cfg: Settings | None = None,
    ) -> "SshSession":
        _cfg = cfg or settings
        return cls(_cfg.endpoint_for(host), credentials, _cfg)

    @classmethod
    def from_head_node(
        cls,
        credentials: SshCredentials,
        cfg: Settings | None = None,
    ) -> "SshSession":
        _cfg = cfg or settings
        return cls(_cfg.head_node_endpoint, credentials, _cfg)

    # ── connection lifecycle ──────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.connected

    def establish(self) -> None:
        """Connect and authenticate once; later calls reuse the outcome.

        Raises:
            ConnectFailed: TCP connect or handshake failed.
            AuthFailed: every authentication strategy failed.
            MissingCredential: username or password could not be resolved.
            UsermgmtError: the session was closed.
        """
        if self._state is SessionState.connected:
            return
        if self._state is SessionState.failed:
            assert self._error is not None
            raise self._error
        if self._state is SessionState.closed:
            raise UsermgmtError(f"SSH session to {self.endpoint.host} is closed")

        host = self.endpoint.host
        log.info("ssh.connecting", host=host, port=self.endpoint.port)
        transport: Optional[paramiko.Transport] = None
        try:
            transport = open_transport(self.endpoint, self._timeout)
            authenticate(
                transport,
                self.credentials,
                use_agent=self._use_agent,
                host=host,
            )
        except UsermgmtError as exc:
            if transport is not None:
                transport.close()
            self._state = SessionState.failed
            self._error = exc
            log.error("ssh.connect_failed", host=host, error=str(exc))
            raise
        except Exception:
            # Not memoized: the next call starts over
            if transport is not None:
                transport.close()
            raise

        self._transport = transport
        self._state = SessionState.connected
        log.info("ssh.connected", host=host)

    def close(self) -> None:
        """Release the transport. A closed session never connects again."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            log.info("ssh.closed", host=self.endpoint.host)
        if self._state is not SessionState.failed:
            self._state = SessionState.closed

    def __enter__(self) -> "SshSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # ── commands ──────────────────────────────────────────────────────

    def execute(self, command: str) -> tuple[int, str]:
        """Run ``command`` on a fresh channel and return (exit code, stdout).

        Raises:
            RemoteExecFailed: the channel could not be opened or read.
            See ``establish`` for connection errors.
        """
        self.establish()
        assert self._transport is not None

        try:
            channel = self._transport.open_session(timeout=self._timeout)
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise RemoteExecFailed("Could not create channel for ssh session") from exc

        try:
            with channel:
                # Commands run to completion; only the connect phase is bounded
                channel.settimeout(None)
                channel.exec_command(command)
                output = channel.makefile("rb").read().decode("utf-8", errors="replace")
                errors = channel.makefile_stderr("rb").read().decode(
                    "utf-8", errors="replace",
                )
                exit_code = channel.recv_exit_status()
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise RemoteExecFailed(
                f"Execution of command on remote machine over ssh has failed: {command}",
            ) from exc

        if errors:
            log.debug("ssh.stderr", host=self.endpoint.host, stderr=errors[:500])
        return exit_code, output


def run_remote_command(session: SshSession, command: str) -> tuple[int, str]:
    """Execute ``command`` over ``session`` and log what came back."""
    log.debug("ssh.exec", host=session.endpoint.host, command=command)
    exit_code, output = session.execute(command)
    log.debug(
        "ssh.exec_done",
        host=session.endpoint.host,
        exit_code=exit_code,
        output=output[:500],
    )
    return exit_code, output
