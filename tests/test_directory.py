from pathlib import Path

import pytest
from ldap3.core.exceptions import LDAPSocketOpenError

from sweep.config import DirectoryConfig
from sweep.directory import InventoryDirectory, LdapDirectory, directory_from_config
from sweep.models import DirectoryUnavailable


class FakeExtend:
    def __init__(self, connection):
        self.standard = self
        self.connection = connection

    def paged_search(self, **kwargs):
        self.connection.searches.append(kwargs)
        prefix = kwargs["search_filter"].split("name=")[1].split("*")[0]
        return [
            {"type": "searchResEntry", "attributes": {"name": name}}
            for name in self.connection.names
            if name.lower().startswith(prefix.lower())
        ] + [{"type": "searchResRef", "uri": ["ldap://elsewhere"]}]


class FakeConnection:
    def __init__(self, names, bind_ok=True):
        self.names = names
        self.bind_ok = bind_ok
        self.result = {"description": "invalidCredentials"}
        self.searches = []
        self.unbound = False
        self.extend = FakeExtend(self)

    def bind(self):
        return self.bind_ok

    def unbind(self):
        self.unbound = True


def test_inventory_directory_reads_yaml(tmp_path: Path) -> None:
    inventory = tmp_path / "hosts.yaml"
    inventory.write_text("computers:\n  - LAB-01\n  - lab-02\n  - srv-01\n")

    results = dict(InventoryDirectory(path=inventory).search(["lab", "none"]))

    assert results == {"lab": ["LAB-01", "lab-02"], "none": []}


def test_inventory_directory_missing_file(tmp_path: Path) -> None:
    directory = InventoryDirectory(path=tmp_path / "missing.yaml")

    with pytest.raises(DirectoryUnavailable):
        list(directory.search(["lab"]))


def test_inventory_directory_rejects_bad_shape(tmp_path: Path) -> None:
    inventory = tmp_path / "hosts.yaml"
    inventory.write_text("computers: lab-01\n")

    with pytest.raises(DirectoryUnavailable):
        list(InventoryDirectory(path=inventory).search(["lab"]))


def test_ldap_directory_searches_computers_by_prefix() -> None:
    conn = FakeConnection(["lab-01", "lab-02", "srv-01"])
    directory = LdapDirectory("dc01", "DC=corp,DC=example", connection_factory=lambda: conn)

    results = list(directory.search(["lab-"]))

    assert results == [("lab-", ["lab-01", "lab-02"])]
    assert conn.searches[0]["search_base"] == "DC=corp,DC=example"
    assert conn.searches[0]["attributes"] == ["name"]
    assert conn.unbound


def test_ldap_filter_escapes_prefix() -> None:
    assert LdapDirectory.search_filter("lab(1)") == "(&(objectCategory=computer)(name=lab\\281\\29*))"


def test_ldap_bind_failure_is_unavailable() -> None:
    conn = FakeConnection([], bind_ok=False)
    directory = LdapDirectory("dc01", "DC=corp", connection_factory=lambda: conn)

    with pytest.raises(DirectoryUnavailable, match="invalidCredentials"):
        list(directory.search(["lab"]))
    assert conn.unbound


def test_ldap_socket_error_is_unavailable() -> None:
    def refuse():
        raise LDAPSocketOpenError("connection refused")

    directory = LdapDirectory("dc01", "DC=corp", connection_factory=refuse)

    with pytest.raises(DirectoryUnavailable):
        list(directory.search(["lab"]))


def test_directory_from_config(tmp_path: Path, monkeypatch) -> None:
    assert directory_from_config(DirectoryConfig()) is None

    inventory = directory_from_config(DirectoryConfig(backend="inventory", inventory=tmp_path / "h.yaml"))
    assert isinstance(inventory, InventoryDirectory)

    monkeypatch.setenv("SWEEP_LDAP_PASSWORD", "s3cret")
    ldap = directory_from_config(
        DirectoryConfig(backend="ldap", server="dc01", base_dn="DC=corp", user="CORP\\svc")
    )
    assert isinstance(ldap, LdapDirectory)
    assert ldap.password == "s3cret"


def test_empty_inventory_matches_nothing() -> None:
    assert list(InventoryDirectory([]).search(["lab-"])) == [("lab-", [])]
