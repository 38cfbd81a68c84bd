"""Turn operator-supplied target specifications into host sets."""

from __future__ import annotations

import logging
import os
import socket
from pathlib import Path
from typing import Any, Iterable

from .directory import DirectoryService
from .models import DirectoryUnavailable, HostRecord, HostSet, TargetKind, TargetSpec

logger = logging.getLogger(__name__)

LOCAL_SENTINELS = frozenset({"", "127.0.0.1", "localhost"})

# Anything a caller may hand to TargetResolver.resolve
Target = Any


def local_host(hostname: str | None = None) -> HostRecord:
    """The identity of the machine sweep is running on."""
    return HostRecord(hostname or socket.gethostname(), local=True)


def parse_target(raw: Target) -> TargetSpec:
    """Classify ``raw`` without contacting any directory.

    Disambiguation order: empty or localhost sentinel, existing file path,
    comma-delimited list, directory prefix lookup.
    """
    if isinstance(raw, TargetSpec):
        return raw
    if raw is None:
        return TargetSpec(TargetKind.LOCAL)
    if isinstance(raw, os.PathLike):
        return TargetSpec(TargetKind.LIST_FILE, (os.fspath(raw),))
    if isinstance(raw, HostRecord):
        return TargetSpec(TargetKind.MATERIALIZED, (raw.name,))
    if not isinstance(raw, str):
        names = tuple(item.name if isinstance(item, HostRecord) else str(item) for item in raw)
        return TargetSpec(TargetKind.MATERIALIZED, names)

    text = raw.strip()
    if text.casefold() in LOCAL_SENTINELS:
        return TargetSpec(TargetKind.LOCAL)
    if _is_file(text):
        return TargetSpec(TargetKind.LIST_FILE, (text,))

    tokens = tuple(token.strip() for token in text.split(",") if token.strip())
    if len(tokens) == 1:
        token = tokens[0]
        if token.endswith("*"):
            return TargetSpec(TargetKind.PREFIX_PATTERN, (token.rstrip("*"),))
        return TargetSpec(TargetKind.SINGLE_HOST, tokens)
    return TargetSpec(TargetKind.HOST_LIST, tokens)


def _is_file(text: str) -> bool:
    try:
        return Path(text).is_file()
    except (OSError, ValueError):
        return False


def read_host_file(path: Path) -> list[str]:
    """Read one hostname per line; blank lines and ``#`` comments are skipped.

    An unreadable or undecodable file yields an empty list.
    """
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("cannot read host list file=%s: %s", path, e)
        return []
    hosts = []
    for line in text.splitlines():
        name = line.strip()
        if name and not name.startswith("#"):
            hosts.append(name)
    return hosts


class TargetResolver:
    """Resolves target specifications into deduplicated host sets.

    Tokens from a comma list or a single name are directory prefix queries;
    a prefix that is also a complete hostname returns that host along with
    any longer names that share it. Without a directory, tokens are taken
    literally.
    """

    def __init__(self, directory: DirectoryService | None = None, *, hostname: str | None = None):
        self.directory = directory
        self.hostname = hostname

    def resolve(self, target: Target) -> HostSet:
        """Resolve ``target`` into a host set. Never raises."""
        if isinstance(target, HostSet):
            return HostSet(target)
        if _is_materialized(target):
            return self._literal(target)

        spec = parse_target(target)
        logger.debug("target kind=%s values=%s", spec.kind.value, ",".join(spec.values))

        if spec.kind is TargetKind.LOCAL:
            return HostSet([local_host(self.hostname)])
        if spec.kind is TargetKind.LIST_FILE:
            if spec.path is None:
                logger.warning("host list target has no file path")
                return HostSet()
            return self._literal(read_host_file(spec.path))
        if spec.kind is TargetKind.MATERIALIZED:
            return self._literal(spec.values)
        return self._expand(spec)

    def _literal(self, names: Iterable[HostRecord | str]) -> HostSet:
        hosts = HostSet()
        for name in names:
            if isinstance(name, HostRecord):
                hosts.add(name)
            elif name is not None:
                hosts.add(self._local_or(str(name)))
        return hosts

    def _local_or(self, name: str) -> HostRecord | str:
        if name.strip().casefold() in LOCAL_SENTINELS:
            return local_host(self.hostname)
        return name

    def _expand(self, spec: TargetSpec) -> HostSet:
        hosts = HostSet()
        prefixes: list[str] = []
        wildcards: set[str] = set()
        for token in spec.values:
            if token.casefold() in LOCAL_SENTINELS:
                hosts.add(local_host(self.hostname))
                continue
            prefix = token.rstrip("*")
            if not prefix:
                logger.warning("ignoring bare wildcard token=%s", token)
                continue
            if spec.kind is TargetKind.PREFIX_PATTERN or token.endswith("*"):
                wildcards.add(prefix)
            prefixes.append(prefix)

        if not prefixes:
            return hosts

        if self.directory is None:
            for prefix in prefixes:
                if prefix in wildcards:
                    logger.warning("no directory configured; cannot expand prefix=%s*", prefix)
                else:
                    hosts.add(prefix)
            return hosts

        try:
            for prefix, matches in self.directory.search(prefixes):
                if not matches:
                    logger.info("no directory entries match prefix=%s", prefix)
                hosts.update(matches)
        except DirectoryUnavailable as e:
            logger.warning("directory unavailable, keeping %d resolved hosts: %s", len(hosts), e)
        except Exception as e:  # noqa: BLE001
            logger.error("directory lookup failed, keeping %d resolved hosts: %s", len(hosts), e, exc_info=True)

        return hosts


def _is_materialized(target: Target) -> bool:
    if isinstance(target, (str, bytes, os.PathLike, TargetSpec, HostRecord)) or target is None:
        return False
    return isinstance(target, Iterable)
