from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter

Record = Dict[str, Any]

MIN_COLUMN_WIDTH = 10
MAX_COLUMN_WIDTH = 40


class SpreadsheetParseError(ValueError):
    """Raised when a byte buffer is not a readable xlsx workbook."""


def build_container(sheets: Mapping[str, Iterable[Mapping[str, Any]]]) -> Workbook:
    """
    Builds a workbook with one sheet per mapping entry, in mapping order.
    The header row is the union of record keys in order of first appearance;
    a key missing from a record leaves its cell empty.
    """
    wb = Workbook()
    wb.remove(wb.active)
    for sheet_name, records in sheets.items():
        rows = [dict(record) for record in records]
        ws = wb.create_sheet(title=sheet_name)
        headers = _collect_headers(rows)
        if not headers:
            continue
        _append_literal(ws, headers)
        for row in rows:
            _append_literal(ws, [row.get(header) for header in headers])
        _fit_columns(ws, headers, rows)
    if not wb.sheetnames:
        wb.create_sheet(title="Sheet1")
    return wb


def write_to_file(wb: Workbook, path: Path | str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    wb.save(target)
    return target


def to_bytes(wb: Workbook) -> bytes:
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def read_container(content: bytes) -> Workbook:
    if not content:
        raise SpreadsheetParseError("Workbook is empty")
    try:
        return load_workbook(BytesIO(content), data_only=True, read_only=False)
    except Exception as exc:
        raise SpreadsheetParseError(f"Not a valid Excel workbook: {exc}") from exc


def get_sheet(wb: Workbook, name: str) -> List[Record]:
    """
    Returns the rows of sheet `name` as records keyed by the header row.
    Empty cells are left out of the record and fully empty rows are skipped.
    A missing sheet yields an empty list.
    """
    if name not in wb.sheetnames:
        return []
    ws = wb[name]
    rows = ws.iter_rows(values_only=True)
    header_row = next(rows, None)
    if not header_row:
        return []
    headers = [str(value).strip() if value is not None else "" for value in header_row]

    records: List[Record] = []
    for values in rows:
        record: Record = {}
        for header, value in zip(headers, values):
            if not header or value is None:
                continue
            if isinstance(value, str) and value == "":
                continue
            record[header] = value
        if record:
            records.append(record)
    return records


def has_sheet(wb: Workbook, name: str) -> bool:
    return name in wb.sheetnames


def _append_literal(ws, values: List[Any]) -> None:
    # openpyxl stores any str starting with "=" as a formula
    ws.append(values)
    for cell in ws[ws.max_row]:
        if isinstance(cell.value, str) and cell.value.startswith("="):
            cell.data_type = "s"


def _collect_headers(rows: List[Record]) -> List[str]:
    headers: List[str] = []
    seen = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                headers.append(key)
    return headers


def _fit_columns(ws, headers: List[str], rows: List[Record]) -> None:
    for idx, header in enumerate(headers, start=1):
        longest = max(
            [len(str(header))] + [len(str(row.get(header, ""))) for row in rows]
        )
        width = min(max(longest + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH)
        ws.column_dimensions[get_column_letter(idx)].width = width
