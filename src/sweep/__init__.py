"""sweep: Resolve host targets, fan a remote operation out to them, and report."""

from .config import EngineConfig, load_config
from .engine import BatchRun, Engine
from .executor import Executor, HostStatus, failed_hosts
from .models import ExecutionOutcome, HostRecord, HostSet, ReportBatch, SinkConfig, WriteResult
from .probe import ConnectivityFilter
from .report import ReportWriter, aggregate
from .resolver import TargetResolver, parse_target

__all__ = [
    "EngineConfig",
    "load_config",
    "Engine",
    "BatchRun",
    "Executor",
    "HostStatus",
    "failed_hosts",
    "ExecutionOutcome",
    "HostRecord",
    "HostSet",
    "ReportBatch",
    "SinkConfig",
    "WriteResult",
    "ConnectivityFilter",
    "ReportWriter",
    "aggregate",
    "TargetResolver",
    "parse_target",
]
