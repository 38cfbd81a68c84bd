"""Report file naming."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class ReportPaths:
    csv: Path
    spreadsheet: Path


def slug(name: str) -> str:
    """Make ``name`` safe to use as a file name stem."""
    cleaned = _UNSAFE.sub("-", name.strip()).strip("-.")
    return cleaned or "report"


def build_report_paths(root: str | Path, task: str, today: date | None = None) -> ReportPaths:
    """Date-stamped CSV and spreadsheet paths under ``root`` that do not exist yet.

    ``inventory_2024-05-01.csv`` is used first, then ``inventory_2024-05-01_1.csv``
    and so on; a suffix is only taken when neither the CSV nor the spreadsheet
    with that stem exists.
    """
    root = Path(root).expanduser()
    root.mkdir(parents=True, exist_ok=True)
    stem = f"{slug(task)}_{(today or date.today()).isoformat()}"

    candidate = stem
    counter = 0
    while True:
        paths = ReportPaths(root / f"{candidate}.csv", root / f"{candidate}.xlsx")
        if not paths.csv.exists() and not paths.spreadsheet.exists():
            return paths
        counter += 1
        candidate = f"{stem}_{counter}"
