"""Aggregation of per-host outcomes and the tabular report sink."""

from __future__ import annotations

import csv
import logging
import sys
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Iterable, TextIO

from .models import (
    Destination,
    ErrorDescriptor,
    ErrorKind,
    ExecutionOutcome,
    HostError,
    LivenessResult,
    ReportBatch,
    ReportRow,
    SinkConfig,
    SinkError,
    SinkStatus,
    WriteResult,
)

logger = logging.getLogger(__name__)

HOST_COLUMN = "Host"
STATUS_COLUMN = "Status"
ERROR_COLUMNS = ("ErrorType", "Error")


def aggregate(
    outcomes: Iterable[ExecutionOutcome], unreachable: Iterable[LivenessResult] = ()
) -> ReportBatch:
    """Split outcomes into host-tagged successes and errors, sorted by host."""
    batch = ReportBatch()
    for outcome in outcomes:
        if outcome.error is None:
            batch.successes.append(ReportRow(outcome.host, outcome.value))
        else:
            batch.errors.append(HostError(outcome.host, outcome.error))

    for result in unreachable:
        error = ErrorDescriptor(ErrorKind.UNREACHABLE, result.detail or "Host did not respond")
        batch.errors.append(HostError(result.host, error))

    batch.successes.sort(key=lambda row: row.host.key)
    batch.errors.sort(key=lambda row: row.host.key)
    return batch


def _records(value: Any) -> list[dict[str, Any]]:
    """Flatten an opaque payload result into table records."""
    if is_dataclass(value) and not isinstance(value, type):
        return [asdict(value)]
    if isinstance(value, Mapping):
        return [dict(value)]
    if isinstance(value, (list, tuple)) and all(
        isinstance(item, Mapping) or (is_dataclass(item) and not isinstance(item, type))
        for item in value
    ):
        return [record for item in value for record in _records(item)] or [{}]
    if value is None:
        return [{}]
    return [{"Value": value}]


def rows_for(batch: ReportBatch) -> list[dict[str, Any]]:
    """Table rows for the successes, each starting with its host."""
    rows = []
    for row in batch.successes:
        for record in _records(row.value):
            tagged = {HOST_COLUMN: row.host.name, STATUS_COLUMN: "ok"}
            tagged.update((k, v) for k, v in record.items() if k not in (HOST_COLUMN, STATUS_COLUMN))
            rows.append(tagged)
    return rows


def error_rows(batch: ReportBatch) -> list[dict[str, Any]]:
    return [
        {
            HOST_COLUMN: item.host.name,
            STATUS_COLUMN: "error",
            "ErrorType": item.error.kind.value,
            "Error": item.error.message,
        }
        for item in batch.errors
    ]


def columns_for(rows: Iterable[dict[str, Any]]) -> list[str]:
    """Union of row keys in first-seen order, error columns last."""
    columns = [HOST_COLUMN, STATUS_COLUMN]
    trailing = []
    for row in rows:
        for key in row:
            if key in ERROR_COLUMNS:
                if key not in trailing:
                    trailing.append(key)
            elif key not in columns:
                columns.append(key)
    return columns + [key for key in ERROR_COLUMNS if key in trailing]


def cell(value: Any) -> Any:
    """Render one value for a flat table."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple, set)):
        return "; ".join(str(item) for item in value)
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class ReportWriter:
    """Writes a ReportBatch to the terminal or to CSV plus spreadsheet.

    The CSV is the durable artifact; the spreadsheet is an enhancement whose
    failure is reported as a warning. ``write`` never raises.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream

    def write(self, batch: ReportBatch, sink: SinkConfig | None = None) -> WriteResult:
        sink = sink or SinkConfig()
        if sink.destination is Destination.FILES:
            return self._write_files(batch, sink)
        return self._write_terminal(batch, sink)

    def _write_files(self, batch: ReportBatch, sink: SinkConfig) -> WriteResult:
        result = WriteResult(csv_path=sink.csv_path, spreadsheet_path=sink.spreadsheet_path)
        rows = rows_for(batch) + error_rows(batch)

        if sink.csv_path is None:
            result.csv = SinkStatus.FAILED
            result.warnings.append("No CSV path given")
        else:
            try:
                write_csv(rows, sink.csv_path)
            except (OSError, ValueError, csv.Error) as e:
                result.csv = SinkStatus.FAILED
                result.warnings.append(f"CSV write failed: {e}")
                logger.error("csv write failed path=%s: %s", sink.csv_path, e)
            else:
                result.csv = SinkStatus.OK
                logger.info("wrote %d row(s) to %s", len(rows), sink.csv_path)

        if sink.spreadsheet_path is not None:
            try:
                write_spreadsheet(batch, sink.spreadsheet_path)
            except SinkError as e:
                result.spreadsheet = SinkStatus.FAILED
                result.warnings.append(str(e))
                logger.warning("%s; %s remains the report", e, sink.csv_path)
            else:
                result.spreadsheet = SinkStatus.OK
                logger.info("wrote spreadsheet %s", sink.spreadsheet_path)

        return result

    def _write_terminal(self, batch: ReportBatch, sink: SinkConfig) -> WriteResult:
        result = WriteResult()
        size = len(rows_for(batch)) + len(batch.errors)
        if sink.interactive and size > sink.table_threshold:
            from .dashboard import ReportViewer

            try:
                ReportViewer(batch).run()
            except Exception as e:  # noqa: BLE001
                result.warnings.append(f"Interactive table failed: {e}")
                logger.warning("interactive table failed, falling back to listing: %s", e)
            else:
                result.terminal = SinkStatus.OK
                return result

        try:
            print_listing(batch, self.stream or sys.stdout)
        except (OSError, ValueError) as e:
            result.terminal = SinkStatus.FAILED
            result.warnings.append(f"Terminal listing failed: {e}")
            logger.error("terminal listing failed: %s", e)
        else:
            result.terminal = SinkStatus.OK
        return result


def _printable(text: str, stream: TextIO) -> str:
    encoding = getattr(stream, "encoding", None) or "utf-8"
    return text.encode(encoding, "backslashreplace").decode(encoding)


def print_listing(batch: ReportBatch, stream: TextIO) -> None:
    """Plain one-line-per-row listing for small result sets."""
    lines = []
    for row in rows_for(batch):
        fields = ", ".join(
            f"{key}={cell(value)}"
            for key, value in row.items()
            if key not in (HOST_COLUMN, STATUS_COLUMN)
        )
        lines.append(f"{row[HOST_COLUMN]}: {fields}" if fields else f"{row[HOST_COLUMN]}: ok")
    for item in batch.errors:
        lines.append(f"{item.host.name}: ERROR {item.error}")
    if batch.empty:
        lines.append("No results.")
    for line in lines:
        print(_printable(line, stream), file=stream)


def write_csv(rows: list[dict[str, Any]], path: Path) -> None:
    """Write ``rows`` to ``path`` with a header covering every column."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    columns = columns_for(rows)
    # Remote output can carry lone surrogates from undecodable bytes
    with open(path, "w", newline="", encoding="utf-8", errors="backslashreplace") as f:
        writer = csv.DictWriter(f, fieldnames=columns, restval="")
        writer.writeheader()
        for row in rows:
            writer.writerow({key: cell(value) for key, value in row.items()})


def write_spreadsheet(batch: ReportBatch, path: Path) -> None:
    """Write results and errors to separate sheets. Raises SinkError."""
    try:
        from openpyxl import Workbook
        from openpyxl.styles import Font
    except ImportError as e:
        raise SinkError(f"Spreadsheet output unavailable: {e}") from e

    try:
        workbook = Workbook()
        results = workbook.active
        results.title = "Results"
        _fill_sheet(results, rows_for(batch), Font)
        _fill_sheet(workbook.create_sheet("Errors"), error_rows(batch), Font)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(path)
    except Exception as e:  # noqa: BLE001
        raise SinkError(f"Spreadsheet write failed: {e}") from e


def _fill_sheet(sheet, rows: list[dict[str, Any]], font_cls) -> None:
    columns = columns_for(rows)
    sheet.append(columns)
    for header in sheet[1]:
        header.font = font_cls(bold=True)
    for row in rows:
        sheet.append([cell(row.get(column)) for column in columns])
    sheet.freeze_panes = "A2"
    sheet.auto_filter.ref = sheet.dimensions
    for index, column in enumerate(columns, start=1):
        width = max([len(str(column))] + [len(str(cell(row.get(column)))) for row in rows])
        sheet.column_dimensions[sheet.cell(row=1, column=index).column_letter].width = min(width + 2, 60)
