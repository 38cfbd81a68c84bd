"""Liveness probes used to drop unreachable hosts before fan-out."""

from __future__ import annotations

import asyncio
import logging
import math
import sys
from typing import Awaitable, Callable, Iterable

from .config import Defaults, EngineConfig
from .executor import invoke
from .models import HostRecord, HostSet, LivenessResult

logger = logging.getLogger(__name__)

# A single probe attempt: True if the host answered
ProbeFunc = Callable[[HostRecord], "Awaitable[bool] | bool"]


def ping_command(host: str, timeout: float) -> list[str]:
    """Build a one-echo ``ping`` invocation for the current platform."""
    if sys.platform == "win32":
        return ["ping", "-n", "1", "-w", str(int(timeout * 1000)), host]
    seconds = str(max(1, math.ceil(timeout)))
    if sys.platform == "darwin":
        return ["ping", "-c", "1", "-t", seconds, host]
    return ["ping", "-c", "1", "-W", seconds, host]


async def ping_probe(host: str, timeout: float) -> bool:
    """Send one ICMP echo using the system ping binary."""
    proc = await asyncio.create_subprocess_exec(
        *ping_command(host, timeout),
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        returncode = await asyncio.wait_for(proc.wait(), timeout + 1)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return False
    return returncode == 0


async def tcp_probe(host: str, port: int, timeout: float) -> bool:
    """Open and close a TCP connection to ``host:port``."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


class ConnectivityFilter:
    """Partitions hosts into reachable and unreachable."""

    def __init__(self, config: EngineConfig | None = None, probe: ProbeFunc | None = None):
        self.defaults: Defaults = (config or EngineConfig()).defaults
        self._probe = probe

    async def probe_all(
        self, hosts: Iterable[HostRecord], probe_count: int | None = None
    ) -> list[LivenessResult]:
        """Probe every host concurrently; results are in completion order."""
        count = probe_count or self.defaults.probe_count
        semaphore = asyncio.Semaphore(self.defaults.max_workers)
        results: list[LivenessResult] = []

        async def probe_one(host: HostRecord) -> None:
            async with semaphore:
                result = await self._probe_host(host, count)
            logger.debug("probe host=%s reachable=%s", host, result.reachable)
            results.append(result)

        await asyncio.gather(*(probe_one(host) for host in HostSet(hosts)))
        return results

    async def _probe_host(self, host: HostRecord, count: int) -> LivenessResult:
        if host.local and self._probe is None:
            return LivenessResult(host, True, "local")

        detail = f"no reply after {count} probe(s)"
        for _ in range(count):
            try:
                if await self._attempt(host):
                    return LivenessResult(host, True)
            except Exception as e:  # noqa: BLE001
                detail = f"probe error: {e}"
                logger.warning("probe host=%s failed: %s", host, e)
        return LivenessResult(host, False, detail)

    async def _attempt(self, host: HostRecord) -> bool:
        if self._probe is not None:
            return bool(await invoke(self._probe, host))
        if self.defaults.probe_method == "tcp":
            return await tcp_probe(host.name, self.defaults.probe_port, self.defaults.probe_timeout)
        return await ping_probe(host.name, self.defaults.probe_timeout)

    def filter_verbose(
        self, hosts: Iterable[HostRecord], probe_count: int | None = None
    ) -> list[LivenessResult]:
        """Blocking probe of every host, reachable or not."""
        return asyncio.run(self.probe_all(hosts, probe_count))

    def filter(self, hosts: Iterable[HostRecord], probe_count: int | None = None) -> HostSet:
        """Blocking probe returning only the reachable hosts."""
        return reachable(self.filter_verbose(hosts, probe_count))


def reachable(results: Iterable[LivenessResult]) -> HostSet:
    return HostSet(result.host for result in results if result.reachable)


def unreachable(results: Iterable[LivenessResult]) -> list[LivenessResult]:
    return [result for result in results if not result.reachable]
