import sys
from pathlib import Path

import pytest

from sweep import runner


def test_missing_config_exits_with_error(tmp_path: Path, capsys) -> None:
    code = runner.main(["pc-1", "--command", "hostname", "--config", str(tmp_path / "missing.yaml")])

    assert code == 1
    assert "Config file not found" in capsys.readouterr().err


def test_invalid_config_exits_with_error(tmp_path: Path, capsys) -> None:
    config = tmp_path / "sweep.yaml"
    config.write_text("defaults:\n  probe_method: arp\n")

    assert runner.main(["pc-1", "--command", "hostname", "--config", str(config)]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_local_path_check_lists_result(tmp_path: Path, capsys) -> None:
    code = runner.main(["", "--path-exists", str(tmp_path), "--no-table"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Status: success" in out
    assert "exists=True" in out


@pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell")
def test_failed_host_sets_exit_code_and_writes_report(tmp_path: Path, capsys) -> None:
    code = runner.main(
        ["localhost", "--command", "exit 4", "--report-dir", str(tmp_path), "--task", "exit check", "--no-spreadsheet"]
    )

    captured = capsys.readouterr()
    assert code == 1
    assert "Failed hosts" in captured.err
    reports = list(tmp_path.glob("exit-check_*.csv"))
    assert len(reports) == 1
    assert "status 4" in reports[0].read_text()


@pytest.mark.parametrize(
    "option, value",
    [("--max-workers", "-1"), ("--max-workers", "0"), ("--timeout", "-5"), ("--timeout", "nan"), ("--probe-count", "0")],
)
def test_non_positive_numbers_are_rejected(option, value, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        runner.parse_args(["pc-1", "--command", "hostname", option, value])

    assert excinfo.value.code == 2
    assert "must be greater than 0" in capsys.readouterr().err


def test_positive_numbers_are_parsed() -> None:
    args = runner.parse_args(["pc-1", "--command", "hostname", "--max-workers", "4", "--timeout", "2.5"])

    assert args.max_workers == 4
    assert args.timeout == 2.5
