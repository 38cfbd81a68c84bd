"""Built-in payloads: host-scoped remote operations carried by the executor."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

import asyncssh

from .config import EngineConfig, SSHConfig
from .models import HostRecord, SweepError

# Type alias for output callback
OutputCallback = Callable[[HostRecord, str], None]  # (host, line) -> None

PAYLOAD_REGISTRY: dict[str, type] = {}


def register_payload(name: str) -> Callable[[type], type]:
    """Class decorator that makes a payload buildable by name."""

    def decorator(cls: type) -> type:
        PAYLOAD_REGISTRY[name] = cls
        return cls

    return decorator


def build_payload(name: str, config: EngineConfig | None = None, **params: Any) -> Any:
    """Instantiate the payload registered as ``name``."""
    cls = PAYLOAD_REGISTRY.get(name)
    if cls is None:
        known = ", ".join(sorted(PAYLOAD_REGISTRY)) or "none"
        raise ValueError(f"Unknown payload '{name}' (registered: {known})")
    return cls(ssh=(config or EngineConfig()).ssh, **params)


class RemoteCommandError(SweepError):
    """A command exited with a non-zero status."""

    def __init__(self, host: HostRecord, command: str, exit_status: int | None, stderr: str = ""):
        self.host = host
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr
        detail = f": {stderr.strip().splitlines()[-1]}" if stderr.strip() else ""
        super().__init__(f"Command exited with status {exit_status}{detail}")


def connect(host: HostRecord, ssh: SSHConfig) -> asyncssh.SSHClientConnection:
    """Open a dedicated SSH session to ``host``."""
    client_keys = [str(ssh.ssh_key)] if ssh.ssh_key.exists() else None
    return asyncssh.connect(
        host.name,
        port=ssh.port,
        username=ssh.user,
        client_keys=client_keys,
        known_hosts=ssh.known_hosts,  # None skips host key verification
        connect_timeout=ssh.connect_timeout,
    )


@register_payload("command")
class RemoteCommand:
    """Run a shell command on each host and capture its output."""

    def __init__(
        self,
        command: str,
        *,
        ssh: SSHConfig | None = None,
        check: bool = True,
        on_output: OutputCallback | None = None,
    ):
        self.command = command
        self.ssh = ssh or SSHConfig()
        self.check = check
        self.on_output = on_output

    async def __call__(self, host: HostRecord) -> dict[str, Any]:
        if host.local:
            exit_status, stdout, stderr = await self._run_local(host)
        else:
            async with connect(host, self.ssh) as conn:
                exit_status, stdout, stderr = await self._run_remote(conn, host)

        if self.check and exit_status != 0:
            raise RemoteCommandError(host, self.command, exit_status, "\n".join(stderr))

        return {
            "exit_status": exit_status,
            "stdout": "\n".join(stdout),
            "stderr": "\n".join(stderr),
        }

    async def _run_remote(
        self, conn: asyncssh.SSHClientConnection, host: HostRecord
    ) -> tuple[int | None, list[str], list[str]]:
        async with conn.create_process(self.command, encoding="utf-8") as proc:
            stdout, stderr = await self._collect(host, proc.stdout, proc.stderr)
            await proc.wait()
            return proc.exit_status, stdout, stderr

    async def _run_local(self, host: HostRecord) -> tuple[int | None, list[str], list[str]]:
        proc = await asyncio.create_subprocess_shell(
            self.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await self._collect(host, proc.stdout, proc.stderr)
            await proc.wait()
        finally:
            # Reap the child on timeout or error so it is not left running
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
        return proc.returncode, stdout, stderr

    async def _collect(self, host: HostRecord, out_stream, err_stream) -> tuple[list[str], list[str]]:
        """Read stdout and stderr concurrently, line by line."""

        async def read_stream(stream, is_stderr: bool = False) -> list[str]:
            lines = []
            while True:
                line = await stream.readline()
                if not line:
                    break
                if isinstance(line, bytes):
                    line = line.decode("utf-8", errors="replace")
                line = line.rstrip("\n\r")
                lines.append(line)
                if self.on_output:
                    prefix = "STDERR: " if is_stderr else ""
                    self.on_output(host, f"{prefix}{line}")
            return lines

        stdout, stderr = await asyncio.gather(
            read_stream(out_stream),
            read_stream(err_stream, is_stderr=True),
        )
        return stdout, stderr


@register_payload("path_exists")
class PathExists:
    """Check whether a path exists on each host."""

    def __init__(self, path: str, *, ssh: SSHConfig | None = None):
        self.path = path
        self.ssh = ssh or SSHConfig()

    async def __call__(self, host: HostRecord) -> dict[str, Any]:
        if host.local:
            exists = Path(self.path).expanduser().exists()
        else:
            async with connect(host, self.ssh) as conn:
                async with conn.start_sftp_client() as sftp:
                    exists = await sftp.exists(self.path)
        return {"path": self.path, "exists": bool(exists)}
