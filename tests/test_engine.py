import io
from pathlib import Path

from sweep.config import EngineConfig
from sweep.directory import InventoryDirectory
from sweep.engine import Engine
from sweep.models import ErrorKind, SinkConfig, SinkStatus
from sweep.report import ReportWriter


def test_pipeline_reports_partial_results(tmp_path: Path) -> None:
    directory = InventoryDirectory(["lab-01", "lab-02", "lab-03", "lab-04", "srv-01"])
    engine = Engine(
        directory=directory,
        probe=lambda host: host.name != "lab-04",
    )

    def payload(host):
        if host.name == "lab-02":
            raise PermissionError("access denied")
        return {"uptime_days": 3}

    run = engine.run("lab-", payload, SinkConfig.files(tmp_path / "lab.csv"))

    assert run.hosts.names() == ["lab-01", "lab-02", "lab-03", "lab-04"]
    assert len(run.outcomes) == 3
    assert [row.host.name for row in run.batch.successes] == ["lab-01", "lab-03"]
    assert {e.host.name: e.error.kind for e in run.batch.errors} == {
        "lab-02": ErrorKind.AUTH,
        "lab-04": ErrorKind.UNREACHABLE,
    }
    assert sorted(run.failed.names()) == ["lab-02", "lab-04"]
    assert run.write.csv is SinkStatus.OK
    assert (tmp_path / "lab.csv").read_text().count("\n") == 5


def test_skip_probe_sends_every_host_to_executor() -> None:
    probed = []
    engine = Engine(directory=InventoryDirectory(["pc-1"]), probe=lambda host: probed.append(host) or False)

    run = engine.run("pc-1,pc-2", lambda host: host.name, SinkConfig(interactive=False), skip_probe=True)

    assert probed == []
    assert sorted(o.value for o in run.outcomes) == ["pc-1"]


def test_nothing_resolved_is_a_no_op() -> None:
    stream = io.StringIO()
    engine = Engine(directory=InventoryDirectory(["pc-1"]), writer=ReportWriter(stream))

    run = engine.run("lab-", lambda host: 1)

    assert not run.hosts
    assert run.write is None
    assert stream.getvalue() == ""


def test_uses_configured_directory(tmp_path: Path) -> None:
    inventory = tmp_path / "hosts.yaml"
    inventory.write_text("- kiosk-1\n- kiosk-2\n")
    config = EngineConfig()
    config.directory.backend = "inventory"
    config.directory.inventory = inventory

    run = Engine(config, writer=ReportWriter(io.StringIO())).run("kiosk", lambda host: "ok", skip_probe=True)

    assert sorted(run.hosts.names()) == ["kiosk-1", "kiosk-2"]
