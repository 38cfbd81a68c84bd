"""Data model shared by the sweep pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator


class SweepError(Exception):
    """Base class for errors raised inside sweep."""


class DirectoryUnavailable(SweepError):
    """The directory service could not be reached or queried."""


class SinkError(SweepError):
    """An optional report format could not be written."""


class TargetKind(Enum):
    """Which form of target specification the caller supplied."""

    LOCAL = "local"
    SINGLE_HOST = "single_host"
    HOST_LIST = "host_list"
    LIST_FILE = "list_file"
    PREFIX_PATTERN = "prefix_pattern"
    MATERIALIZED = "materialized"


@dataclass(frozen=True)
class TargetSpec:
    """A parsed target specification."""

    kind: TargetKind
    values: tuple[str, ...] = ()

    @property
    def path(self) -> Path | None:
        if self.kind is TargetKind.LIST_FILE and self.values:
            return Path(self.values[0])
        return None


@dataclass(frozen=True, eq=False)
class HostRecord:
    """A resolved host. Identity is the case-folded name."""

    name: str
    local: bool = False

    @property
    def key(self) -> str:
        return self.name.casefold()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HostRecord):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return self.name


class HostSet:
    """Ordered, case-insensitively unique collection of hosts."""

    def __init__(self, hosts: Iterable[HostRecord | str] = ()) -> None:
        self._hosts: dict[str, HostRecord] = {}
        for host in hosts:
            self.add(host)

    def add(self, host: HostRecord | str) -> bool:
        """Add ``host``; returns False for blanks and duplicates."""
        if isinstance(host, str):
            name = host.strip()
            if not name:
                return False
            host = HostRecord(name)
        elif not host.name.strip():
            return False
        if host.key in self._hosts:
            return False
        self._hosts[host.key] = host
        return True

    def update(self, hosts: Iterable[HostRecord | str]) -> None:
        for host in hosts:
            self.add(host)

    def names(self) -> list[str]:
        return [host.name for host in self._hosts.values()]

    def __contains__(self, host: object) -> bool:
        if isinstance(host, str):
            return host.strip().casefold() in self._hosts
        if isinstance(host, HostRecord):
            return host.key in self._hosts
        return False

    def __iter__(self) -> Iterator[HostRecord]:
        return iter(list(self._hosts.values()))

    def __len__(self) -> int:
        return len(self._hosts)

    def __bool__(self) -> bool:
        return bool(self._hosts)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HostSet):
            return set(self._hosts) == set(other._hosts)
        return NotImplemented

    def __repr__(self) -> str:
        return f"HostSet({self.names()!r})"


@dataclass
class LivenessResult:
    """Outcome of probing one host."""

    host: HostRecord
    reachable: bool
    detail: str = ""


class ErrorKind(Enum):
    """Classification of a per-host failure."""

    EXCEPTION = "exception"
    TIMEOUT = "timeout"
    AUTH = "auth"
    CONNECTION = "connection"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class ErrorDescriptor:
    """In-band description of a host-level failure."""

    kind: ErrorKind
    message: str
    exception_type: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass
class ExecutionOutcome:
    """Result of running a payload on one host.

    Exactly one of ``value`` and ``error`` is meaningful: a payload may
    legitimately return ``None``, so success is decided by ``error``.
    """

    host: HostRecord
    value: Any = None
    error: ErrorDescriptor | None = None

    @classmethod
    def success(cls, host: HostRecord, value: Any) -> ExecutionOutcome:
        return cls(host=host, value=value)

    @classmethod
    def failure(cls, host: HostRecord, error: ErrorDescriptor) -> ExecutionOutcome:
        return cls(host=host, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReportRow:
    """A successful payload result tagged with its host."""

    host: HostRecord
    value: Any


@dataclass
class HostError:
    """A host that produced no result, and why."""

    host: HostRecord
    error: ErrorDescriptor


@dataclass
class ReportBatch:
    """Aggregated, host-sorted results of one batch."""

    successes: list[ReportRow] = field(default_factory=list)
    errors: list[HostError] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.successes and not self.errors


class Destination(Enum):
    """Where a report is written."""

    TERMINAL = "terminal"
    FILES = "files"


@dataclass
class SinkConfig:
    """Report sink selection."""

    destination: Destination = Destination.TERMINAL
    csv_path: Path | None = None
    spreadsheet_path: Path | None = None
    table_threshold: int = 25
    interactive: bool = True

    @classmethod
    def files(cls, csv_path: str | Path, spreadsheet_path: str | Path | None = None) -> SinkConfig:
        return cls(
            destination=Destination.FILES,
            csv_path=Path(csv_path),
            spreadsheet_path=Path(spreadsheet_path) if spreadsheet_path else None,
        )


class SinkStatus(Enum):
    """Outcome of one report backend."""

    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class WriteResult:
    """What the report sink produced."""

    csv: SinkStatus = SinkStatus.SKIPPED
    spreadsheet: SinkStatus = SinkStatus.SKIPPED
    terminal: SinkStatus = SinkStatus.SKIPPED
    csv_path: Path | None = None
    spreadsheet_path: Path | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def canonical_path(self) -> Path | None:
        """The CSV is the durable artifact whenever it was written."""
        if self.csv is SinkStatus.OK:
            return self.csv_path
        return None
