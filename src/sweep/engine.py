"""One-call pipeline: resolve, probe, fan out, aggregate, report."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from .config import EngineConfig
from .directory import DirectoryService, directory_from_config
from .executor import Executor, Payload, StatusCallback, failed_hosts
from .models import ExecutionOutcome, HostSet, LivenessResult, ReportBatch, SinkConfig, WriteResult
from .probe import ConnectivityFilter, ProbeFunc, reachable, unreachable
from .report import ReportWriter, aggregate
from .resolver import Target, TargetResolver

logger = logging.getLogger(__name__)


@dataclass
class BatchRun:
    """Everything one engine invocation produced."""

    hosts: HostSet
    liveness: list[LivenessResult] = field(default_factory=list)
    outcomes: list[ExecutionOutcome] = field(default_factory=list)
    batch: ReportBatch = field(default_factory=ReportBatch)
    write: WriteResult | None = None

    @property
    def failed(self) -> HostSet:
        """Hosts that were unreachable or errored."""
        hosts = HostSet(result.host for result in unreachable(self.liveness))
        hosts.update(failed_hosts(self.outcomes))
        return hosts


class Engine:
    """Composes the resolver, prefilter, executor and report sink."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        directory: DirectoryService | None = None,
        probe: ProbeFunc | None = None,
        on_status: StatusCallback | None = None,
        writer: ReportWriter | None = None,
    ):
        self.config = config or EngineConfig()
        if directory is None:
            directory = directory_from_config(self.config.directory)
        self.resolver = TargetResolver(directory)
        self.prefilter = ConnectivityFilter(self.config, probe=probe)
        self.executor = Executor(self.config, on_status=on_status)
        self.writer = writer or ReportWriter()

    async def collect(
        self,
        target: Target,
        payload: Payload,
        *,
        skip_probe: bool = False,
        probe_count: int | None = None,
    ) -> BatchRun:
        """Resolve, probe and fan out without writing a report."""
        hosts = self.resolver.resolve(target)
        run = BatchRun(hosts=hosts)
        if not hosts:
            logger.info("target resolved to no hosts; nothing to do")
            return run

        targets = hosts
        if not skip_probe:
            run.liveness = await self.prefilter.probe_all(hosts, probe_count)
            targets = reachable(run.liveness)
            logger.info("%d of %d host(s) reachable", len(targets), len(hosts))

        if targets:
            run.outcomes = await self.executor.run(targets, payload)
        run.batch = aggregate(run.outcomes, unreachable(run.liveness))
        return run

    def run(
        self,
        target: Target,
        payload: Payload,
        sink: SinkConfig | None = None,
        *,
        skip_probe: bool = False,
        probe_count: int | None = None,
    ) -> BatchRun:
        """Blocking end-to-end run; the report is written unless nothing resolved."""
        run = asyncio.run(
            self.collect(target, payload, skip_probe=skip_probe, probe_count=probe_count)
        )
        if run.hosts:
            if sink is None:
                sink = SinkConfig(table_threshold=self.config.defaults.table_threshold)
            run.write = self.writer.write(run.batch, sink)
        return run
