from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from openpyxl import Workbook

from aquatron import schemas
from aquatron.services import schema_mapper, validation
from aquatron.utils import excel_codec


class ExcelImportError(Exception):
    """
    Rejection of an import. `result` carries the same shape a successful
    call returns (`success`, `message`, plus `errors` or `error`).
    """

    def __init__(self, result: schemas.OperationResult):
        super().__init__(result.message)
        self.result = result


def merge_test_parameters(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Coalesces rows sharing a key (`symbol`, else `name`, trimmed). The first
    row of a key supplies every field; later rows only add their quantity.
    Rows without a key are dropped. Output keeps first-occurrence order.
    """
    combined: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        key = str(row.get("symbol") or row.get("name") or "").strip()
        if not key:
            continue
        if key not in combined:
            seeded = dict(row)
            seeded["quantity"] = _coerce_quantity(row.get("quantity"))
            combined[key] = seeded
        else:
            combined[key]["quantity"] += _coerce_quantity(row.get("quantity"))
    return list(combined.values())


def check_upload(filename: str, content: bytes) -> None:
    file_check = validation.validate_excel_file(filename, len(content or b""))
    if not file_check.is_valid:
        raise ExcelImportError(
            schemas.OperationResult(
                success=False,
                message="File validation failed",
                errors=file_check.errors,
            )
        )


def import_comprehensive_data(
    filename: str,
    content: bytes,
    *,
    allow_unknown_parameters: bool = False,
    validate_data: bool = False,
) -> schemas.ImportResult:
    check_upload(filename, content)
    wb = _open_workbook(content, "Failed to import data")

    warnings: List[str] = []
    imported_sheets: List[str] = []
    total_rows = 0
    device_settings = schemas.DeviceSettings()
    vout_table: List[schemas.VoutEntry] = []
    stp_data: List[schemas.TestParameter] = []

    if excel_codec.has_sheet(wb, schema_mapper.DEVICE_SETTINGS_SHEET):
        device_rows = excel_codec.get_sheet(wb, schema_mapper.DEVICE_SETTINGS_SHEET)
        total_rows += len(device_rows)
        device_settings = schema_mapper.device_settings_from_rows(
            device_rows,
            allow_unknown_parameters=allow_unknown_parameters,
            warnings=warnings,
        )
        imported_sheets.append(schema_mapper.DEVICE_SETTINGS_SHEET)

    if excel_codec.has_sheet(wb, schema_mapper.VOUT_TABLE_SHEET):
        vout_rows = excel_codec.get_sheet(wb, schema_mapper.VOUT_TABLE_SHEET)
        vout_table = schema_mapper.vout_table_from_rows(vout_rows, warnings)
        total_rows += len(vout_table)
        imported_sheets.append(schema_mapper.VOUT_TABLE_SHEET)

    if excel_codec.has_sheet(wb, schema_mapper.STP_SHEET):
        merged = merge_test_parameters(excel_codec.get_sheet(wb, schema_mapper.STP_SHEET))
        stp_data = schema_mapper.test_parameters_from_records(merged, warnings)
        total_rows += len(stp_data)
        imported_sheets.append(schema_mapper.STP_SHEET)

    result = schemas.ImportResult(
        device_settings=device_settings,
        vout_table=vout_table,
        stp_data=stp_data,
        warnings=warnings,
        imported_sheets=imported_sheets,
        total_rows=total_rows,
        backup_info=read_backup_info(wb),
    )

    if not device_settings.set_values() and not vout_table and not stp_data:
        result.success = False
        result.message = "No valid data found in the Excel file"

    if validate_data:
        report = validation.validate_imported_data(device_settings, vout_table, stp_data)
        result.validation = report
        if not report.is_valid:
            result.warnings.extend(report.errors)

    return result


def import_device_settings_only(filename: str, content: bytes) -> schemas.ImportResult:
    check_upload(filename, content)
    wb = _open_workbook(content, "Failed to import device settings")

    result = schemas.ImportResult(message="Device settings imported successfully")
    if excel_codec.has_sheet(wb, schema_mapper.BASIC_SETTINGS_SHEET):
        result.device_settings = schema_mapper.device_settings_from_rows(
            excel_codec.get_sheet(wb, schema_mapper.BASIC_SETTINGS_SHEET)
        )
        result.imported_sheets.append(schema_mapper.BASIC_SETTINGS_SHEET)
    if excel_codec.has_sheet(wb, schema_mapper.VOUT_TABLE_SHEET):
        result.vout_table = schema_mapper.vout_table_from_rows(
            excel_codec.get_sheet(wb, schema_mapper.VOUT_TABLE_SHEET)
        )
        result.imported_sheets.append(schema_mapper.VOUT_TABLE_SHEET)
    result.total_rows = len(result.device_settings.set_values()) + len(result.vout_table)
    return result


def import_stp_only(filename: str, content: bytes) -> schemas.ImportResult:
    check_upload(filename, content)
    wb = _open_workbook(content, "Failed to import STP data")

    result = schemas.ImportResult(message="STP data imported successfully")
    rows = excel_codec.get_sheet(wb, schema_mapper.STP_SHEET)
    if rows:
        result.stp_data = schema_mapper.test_parameters_from_records(rows, result.warnings)
        result.imported_sheets.append(schema_mapper.STP_SHEET)
    result.total_rows = len(result.stp_data)

    if not result.stp_data:
        result.success = False
        result.message = "No STP data found in the Excel file"
    return result


def read_backup_info(wb: Workbook) -> Optional[schemas.BackupInfo]:
    if not excel_codec.has_sheet(wb, schema_mapper.BACKUP_INFO_SHEET):
        return None
    fields = {
        str(row.get("Field", "")).strip(): row.get("Value")
        for row in excel_codec.get_sheet(wb, schema_mapper.BACKUP_INFO_SHEET)
    }
    timestamp = fields.get("Timestamp")
    if not timestamp:
        return None
    info = {
        "timestamp": str(timestamp),
        "version": str(fields.get("Version") or ""),
    }
    if fields.get("Description"):
        info["description"] = str(fields["Description"])
    return schemas.BackupInfo(**info)


def _open_workbook(content: bytes, message: str) -> Workbook:
    try:
        return excel_codec.read_container(content)
    except excel_codec.SpreadsheetParseError as exc:
        raise ExcelImportError(
            schemas.OperationResult(success=False, message=message, error=str(exc))
        ) from exc


def _coerce_quantity(value: Any) -> schemas.Number:
    number = schema_mapper.parse_number(value) if value is not None else None
    return number if number is not None else 0
