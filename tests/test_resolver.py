import socket
from pathlib import Path

from sweep.directory import DirectoryService, InventoryDirectory
from sweep.models import DirectoryUnavailable, TargetKind, TargetSpec
from sweep.resolver import TargetResolver, parse_target, read_host_file


class FailingDirectory(DirectoryService):
    def __init__(self, answer_first: bool = False):
        self.answer_first = answer_first

    def search(self, prefixes):
        if self.answer_first:
            yield prefixes[0], [f"{prefixes[0]}-01"]
        raise DirectoryUnavailable("domain controller down")


def test_parse_target_order(tmp_path: Path) -> None:
    host_file = tmp_path / "hosts.txt"
    host_file.write_text("a\n")

    assert parse_target("").kind is TargetKind.LOCAL
    assert parse_target("127.0.0.1").kind is TargetKind.LOCAL
    assert parse_target("LOCALHOST").kind is TargetKind.LOCAL
    assert parse_target(str(host_file)).kind is TargetKind.LIST_FILE
    assert parse_target("lab-01").kind is TargetKind.SINGLE_HOST
    assert parse_target("lab-01, lab-02").values == ("lab-01", "lab-02")
    assert parse_target("lab-*").kind is TargetKind.PREFIX_PATTERN
    assert parse_target("lab-*").values == ("lab-",)
    assert parse_target(["a", "b"]).kind is TargetKind.MATERIALIZED


def test_empty_target_resolves_to_local_machine() -> None:
    hosts = TargetResolver().resolve("")

    assert hosts.names() == [socket.gethostname()]
    assert next(iter(hosts)).local


def test_list_file_drops_blank_lines(tmp_path: Path) -> None:
    host_file = tmp_path / "hosts.txt"
    host_file.write_text("hostA\nhostB\n\nhostC\n")
    directory = InventoryDirectory(["hostA-extra", "hostB", "hostC"])

    hosts = TargetResolver(directory).resolve(str(host_file))

    # File entries are literal, never expanded through the directory
    assert hosts.names() == ["hostA", "hostB", "hostC"]


def test_list_file_skips_comments_and_bom(tmp_path: Path) -> None:
    host_file = tmp_path / "hosts.txt"
    host_file.write_bytes("\ufeff# lab machines\nlab-01\r\n lab-02 \r\n".encode("utf-8"))

    assert read_host_file(host_file) == ["lab-01", "lab-02"]


def test_unreadable_list_file_resolves_empty(tmp_path: Path) -> None:
    host_file = tmp_path / "hosts.txt"
    host_file.write_bytes(b"\xff\xfe\x00\xd8bad")

    assert len(TargetResolver().resolve(str(host_file))) == 0


def test_prefix_lookup_uses_directory() -> None:
    directory = InventoryDirectory(["lab-01", "lab-02", "other-03"])

    hosts = TargetResolver(directory).resolve("lab-")

    assert hosts.names() == ["lab-01", "lab-02"]


def test_exact_name_is_also_a_prefix_query() -> None:
    directory = InventoryDirectory(["lab-1", "lab-10", "lab-11", "lab-2"])

    hosts = TargetResolver(directory).resolve("lab-1")

    assert hosts.names() == ["lab-1", "lab-10", "lab-11"]


def test_repeated_hosts_collapse() -> None:
    directory = InventoryDirectory(["t-client-01", "t-client-02"])

    assert len(TargetResolver(directory).resolve("t-client-01,t-client-01")) == 1
    assert len(TargetResolver().resolve("t-client-01,T-CLIENT-01")) == 1


def test_resolution_is_idempotent() -> None:
    directory = InventoryDirectory(["lab-1", "lab-10", "lab-2", "srv-1"])
    resolver = TargetResolver(directory)

    first = resolver.resolve("lab-,srv-")
    second = resolver.resolve(first.names())

    assert second == first
    assert resolver.resolve(first) == first


def test_unmatched_prefix_is_dropped() -> None:
    hosts = TargetResolver(InventoryDirectory(["lab-01"])).resolve("nothing-here")

    assert len(hosts) == 0


def test_without_directory_tokens_are_literal() -> None:
    hosts = TargetResolver().resolve("pc-1, pc-2,,")

    assert hosts.names() == ["pc-1", "pc-2"]


def test_explicit_wildcard_needs_directory() -> None:
    assert len(TargetResolver().resolve("lab-*")) == 0


def test_localhost_inside_list_maps_to_local_machine() -> None:
    hosts = TargetResolver(hostname="helpdesk-pc").resolve("localhost,pc-1")

    assert hosts.names() == ["helpdesk-pc", "pc-1"]


def test_directory_outage_returns_partial_set() -> None:
    resolver = TargetResolver(FailingDirectory(answer_first=True), hostname="me")

    hosts = resolver.resolve("localhost,lab,srv")

    assert hosts.names() == ["me", "lab-01"]


def test_directory_outage_never_raises() -> None:
    assert len(TargetResolver(FailingDirectory()).resolve("lab-")) == 0


def test_wildcards_inside_a_list_are_prefix_queries() -> None:
    resolver = TargetResolver(InventoryDirectory(["lab-01", "lab-02", "srv-01", "pc-9"]))

    assert resolver.resolve("lab-*,srv-*").names() == ["lab-01", "lab-02", "srv-01"]


def test_wildcards_inside_a_list_need_directory() -> None:
    assert TargetResolver().resolve("lab-*,pc-1").names() == ["pc-1"]
    assert TargetResolver().resolve("*,pc-1").names() == ["pc-1"]


def test_list_file_target_spec_reads_file(tmp_path: Path) -> None:
    host_file = tmp_path / "hosts.txt"
    host_file.write_text("pc-1\npc-2\n")

    assert TargetResolver().resolve(TargetSpec(TargetKind.LIST_FILE, (str(host_file),))).names() == ["pc-1", "pc-2"]


def test_list_file_spec_without_path_resolves_empty() -> None:
    assert len(TargetResolver().resolve(TargetSpec(TargetKind.LIST_FILE))) == 0
