"""Directory services used to expand host prefixes into computer names."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Sequence

import yaml
from ldap3 import SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from .config import DirectoryConfig
from .models import DirectoryUnavailable

logger = logging.getLogger(__name__)

# (prefix, matching computer names)
SearchResult = Iterator[tuple[str, list[str]]]


class DirectoryService:
    """Query-by-prefix lookup of computer names.

    ``search`` is a generator: the connection is opened when iteration
    starts and released when it finishes, so a failure part-way through
    leaves the caller with every prefix already yielded.
    """

    def search(self, prefixes: Sequence[str]) -> SearchResult:
        raise NotImplementedError


class InventoryDirectory(DirectoryService):
    """Directory backed by a static list of names or a YAML inventory file."""

    def __init__(self, names: Iterable[str] | None = None, *, path: Path | None = None):
        if names is None and path is None:
            raise ValueError("InventoryDirectory needs names or a path")
        self._names = list(names) if names is not None else None
        self.path = Path(path) if path is not None else None

    def search(self, prefixes: Sequence[str]) -> SearchResult:
        names = self._load()
        for prefix in prefixes:
            needle = prefix.casefold()
            yield prefix, [name for name in names if name.casefold().startswith(needle)]

    def _load(self) -> list[str]:
        if self._names is not None:
            return self._names
        if self.path is None:
            return []
        try:
            with open(self.path) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise DirectoryUnavailable(f"Cannot read inventory {self.path}: {e}") from e

        if isinstance(raw, dict):
            raw = raw.get("computers")
        if not isinstance(raw, list):
            raise DirectoryUnavailable(
                f"Inventory {self.path} must be a list of names or contain a 'computers' list"
            )
        return [str(item).strip() for item in raw if item is not None and str(item).strip()]


class LdapDirectory(DirectoryService):
    """Active Directory computer lookup over LDAP."""

    page_size = 500

    def __init__(
        self,
        server: str,
        base_dn: str,
        *,
        user: str | None = None,
        password: str | None = None,
        use_ssl: bool = True,
        timeout: float = 10.0,
        connection_factory: Callable[[], Any] | None = None,
    ):
        self.server = server
        self.base_dn = base_dn
        self.user = user
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout
        self._connection_factory = connection_factory or self._connect

    def _connect(self) -> Connection:
        server = Server(self.server, use_ssl=self.use_ssl, connect_timeout=self.timeout)
        return Connection(
            server,
            user=self.user,
            password=self.password,
            receive_timeout=self.timeout,
        )

    @staticmethod
    def search_filter(prefix: str) -> str:
        return f"(&(objectCategory=computer)(name={escape_filter_chars(prefix)}*))"

    def search(self, prefixes: Sequence[str]) -> SearchResult:
        try:
            conn = self._connection_factory()
        except LDAPException as e:
            raise DirectoryUnavailable(f"LDAP server {self.server} unavailable: {e}") from e

        try:
            try:
                bound = conn.bind()
            except LDAPException as e:
                raise DirectoryUnavailable(f"LDAP server {self.server} unavailable: {e}") from e
            if not bound:
                description = (conn.result or {}).get("description", "unknown")
                raise DirectoryUnavailable(f"LDAP bind to {self.server} failed: {description}")

            for prefix in prefixes:
                try:
                    entries = conn.extend.standard.paged_search(
                        search_base=self.base_dn,
                        search_filter=self.search_filter(prefix),
                        search_scope=SUBTREE,
                        attributes=["name"],
                        paged_size=self.page_size,
                        generator=False,
                    )
                except LDAPException as e:
                    raise DirectoryUnavailable(f"LDAP search for '{prefix}' failed: {e}") from e
                yield prefix, _entry_names(entries)
        finally:
            conn.unbind()


def _entry_names(entries: Iterable[dict[str, Any]]) -> list[str]:
    names = []
    for entry in entries or []:
        if entry.get("type") != "searchResEntry":
            continue
        value = entry.get("attributes", {}).get("name")
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value:
            names.append(str(value))
    return names


def directory_from_config(config: DirectoryConfig) -> DirectoryService | None:
    """Build the configured directory service, or None when disabled."""
    if config.backend == "inventory":
        return InventoryDirectory(path=config.inventory)
    if config.backend == "ldap":
        password = os.environ.get(config.password_env) if config.password_env else None
        if config.user and not password:
            logger.warning(
                "directory user=%s has no password in $%s", config.user, config.password_env
            )
        return LdapDirectory(
            config.server or "",
            config.base_dn or "",
            user=config.user,
            password=password,
            use_ssl=config.use_ssl,
            timeout=config.timeout,
        )
    return None
