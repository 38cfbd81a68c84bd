from datetime import date
from pathlib import Path

from sweep.paths import build_report_paths, slug


def test_paths_are_date_stamped(tmp_path: Path) -> None:
    paths = build_report_paths(tmp_path / "reports", "Installed Software", date(2024, 5, 1))

    assert paths.csv == tmp_path / "reports" / "Installed-Software_2024-05-01.csv"
    assert paths.spreadsheet == tmp_path / "reports" / "Installed-Software_2024-05-01.xlsx"
    assert (tmp_path / "reports").is_dir()


def test_paths_avoid_existing_reports(tmp_path: Path) -> None:
    today = date(2024, 5, 1)
    (tmp_path / "scan_2024-05-01.csv").write_text("")
    (tmp_path / "scan_2024-05-01_1.xlsx").write_text("")

    paths = build_report_paths(tmp_path, "scan", today)

    assert paths.csv.name == "scan_2024-05-01_2.csv"


def test_slug() -> None:
    assert slug("../printer map!") == "printer-map"
    assert slug("///") == "report"
