"""Concurrent fan-out engine for sweep."""

from __future__ import annotations

import asyncio
import errno
import inspect
import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Iterable

import asyncssh

from .config import EngineConfig
from .models import ErrorDescriptor, ErrorKind, ExecutionOutcome, HostRecord, HostSet

logger = logging.getLogger(__name__)


class HostStatus(Enum):
    """Status of a host's execution."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


# Type alias for the unit of remote work: (host) -> result, sync or async
Payload = Callable[[HostRecord], Any]
StatusCallback = Callable[[HostRecord, HostStatus], None]  # (host, status) -> None


def _is_async(func: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__call__", None)
    )


async def invoke(
    func: Callable[[HostRecord], Any], host: HostRecord, pool: ThreadPoolExecutor | None = None
) -> Any:
    """Call ``func(host)``; plain callables run in a worker thread."""
    if _is_async(func):
        return await func(host)
    if pool is None:
        value = await asyncio.to_thread(func, host)
    else:
        value = await asyncio.get_running_loop().run_in_executor(pool, func, host)
    if inspect.isawaitable(value):
        value = await value
    return value


def classify_error(exc: BaseException) -> ErrorDescriptor:
    """Map an exception raised for one host to an error descriptor."""
    exception_type = type(exc).__name__
    message = str(exc) or exception_type

    if isinstance(exc, asyncio.TimeoutError):
        return ErrorDescriptor(ErrorKind.TIMEOUT, message, exception_type)
    if isinstance(exc, (asyncssh.PermissionDenied, PermissionError)):
        return ErrorDescriptor(ErrorKind.AUTH, f"Authentication failed: {message}", exception_type)
    if isinstance(exc, asyncssh.Error):
        return ErrorDescriptor(ErrorKind.CONNECTION, f"SSH error: {message}", exception_type)
    if _is_network_error(exc):
        return ErrorDescriptor(ErrorKind.CONNECTION, f"Connection error: {message}", exception_type)
    return ErrorDescriptor(ErrorKind.EXCEPTION, message, exception_type)


NETWORK_ERRNOS = frozenset(
    getattr(errno, name)
    for name in (
        "ECONNREFUSED",
        "ECONNRESET",
        "ECONNABORTED",
        "EHOSTUNREACH",
        "EHOSTDOWN",
        "ENETUNREACH",
        "ENETDOWN",
        "ETIMEDOUT",
    )
    if hasattr(errno, name)
)


def _is_network_error(exc: BaseException) -> bool:
    if isinstance(exc, (ConnectionError, socket.gaierror, socket.herror)):
        return True
    return isinstance(exc, OSError) and exc.errno in NETWORK_ERRNOS


class Executor:
    """Runs one payload across many hosts in parallel.

    Every distinct host gets exactly one outcome. A failing, hanging or
    unreachable host never affects the others, and ``run`` only returns
    once every host has finished or timed out.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        on_status: StatusCallback | None = None,
        *,
        max_workers: int | None = None,
        host_timeout: float | None = None,
    ):
        self.config = config or EngineConfig()
        self.on_status = on_status
        self.max_workers = max_workers or self.config.defaults.max_workers
        self.host_timeout = host_timeout or self.config.defaults.host_timeout
        self.states: dict[str, HostStatus] = {}

    def _emit_status(self, host: HostRecord, status: HostStatus) -> None:
        """Emit status change for a host."""
        self.states[host.key] = status
        if self.on_status:
            try:
                self.on_status(host, status)
            except Exception:  # noqa: BLE001
                logger.exception("status callback failed for host=%s", host)

    async def run(self, hosts: Iterable[HostRecord | str], payload: Payload) -> list[ExecutionOutcome]:
        """Run ``payload`` on all hosts in parallel."""
        self.states = {}
        claimed: set[str] = set()
        targets: list[HostRecord] = []
        for host in HostSet(hosts):
            # At most one in-flight execution per host
            if host.key in claimed:
                continue
            claimed.add(host.key)
            targets.append(host)
            self._emit_status(host, HostStatus.PENDING)

        logger.info("dispatching payload to %d host(s), max_workers=%d", len(targets), self.max_workers)

        semaphore = asyncio.Semaphore(self.max_workers)
        outcomes: list[ExecutionOutcome] = []
        # One thread per host: an abandoned, timed-out sync payload keeps its
        # thread, so a shared cap would starve the hosts queued behind it
        pool = ThreadPoolExecutor(max_workers=len(targets) or 1, thread_name_prefix="sweep")

        async def worker(host: HostRecord) -> None:
            async with semaphore:
                outcome = await self._run_host(host, payload, pool)
            outcomes.append(outcome)

        try:
            results = await asyncio.gather(*(worker(host) for host in targets), return_exceptions=True)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        # A worker that died outside _run_host still owes its host an outcome
        finished = {outcome.host.key for outcome in outcomes}
        for host, result in zip(targets, results):
            if host.key not in finished:
                error = result if isinstance(result, BaseException) else RuntimeError("worker exited")
                outcomes.append(ExecutionOutcome.failure(host, classify_error(error)))
                self._emit_status(host, HostStatus.FAILED)

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info("batch complete: %d ok, %d failed", len(outcomes) - failed, failed)
        return outcomes

    async def _run_host(
        self, host: HostRecord, payload: Payload, pool: ThreadPoolExecutor | None = None
    ) -> ExecutionOutcome:
        """Run the payload on a single host, converting any failure to an outcome."""
        self._emit_status(host, HostStatus.RUNNING)
        try:
            value = await asyncio.wait_for(invoke(payload, host, pool), self.host_timeout)
        except asyncio.TimeoutError:
            error = ErrorDescriptor(
                ErrorKind.TIMEOUT,
                f"No result within {self.host_timeout:g}s",
                "TimeoutError",
            )
            logger.warning("host=%s timed out after %ss", host, self.host_timeout)
        except Exception as e:  # noqa: BLE001
            error = classify_error(e)
            logger.warning("host=%s failed: %s", host, error)
            logger.debug("host=%s traceback", host, exc_info=True)
        else:
            self._emit_status(host, HostStatus.SUCCESS)
            return ExecutionOutcome.success(host, value)

        self._emit_status(host, HostStatus.FAILED)
        return ExecutionOutcome.failure(host, error)

    def execute(self, hosts: Iterable[HostRecord | str], payload: Payload) -> list[ExecutionOutcome]:
        """Blocking form of :meth:`run`."""
        return asyncio.run(self.run(hosts, payload))


def failed_hosts(outcomes: Iterable[ExecutionOutcome]) -> HostSet:
    """Hosts whose outcome is an error, ready to be passed back to ``execute``."""
    return HostSet(outcome.host for outcome in outcomes if not outcome.ok)
