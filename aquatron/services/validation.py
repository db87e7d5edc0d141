from __future__ import annotations

import re
from typing import List, Optional, Sequence

from aquatron import config, schemas

EXCEL_NAME_PATTERN = re.compile(r"\.(xlsx|xls)$", re.IGNORECASE)

FREEFALL_RANGE = (0, 1000)
HPTF_RANGE = (0, 10000)
HARMONIC_VALUES = (0, 1, 2)
DURATION_RANGE = (1000, 60000)
VOUT_BASE_RANGE = (0, 10)
FREQ_RANGE = (1, 10000)


def validate_excel_file(filename: str, size: int, *, max_bytes: Optional[int] = None) -> schemas.FileCheck:
    """
    Checks an upload before any parsing: Excel extension, size limit and
    non-emptiness.
    """
    limit = config.MAX_UPLOAD_BYTES if max_bytes is None else max_bytes
    errors: List[str] = []

    if not EXCEL_NAME_PATTERN.search(filename or ""):
        errors.append("File must be an Excel file (.xlsx or .xls)")
    if size > limit:
        errors.append(f"File size must be less than {_format_megabytes(limit)}")
    if size == 0:
        errors.append("File is empty")

    return schemas.FileCheck(is_valid=not errors, errors=errors, warnings=[])


def validate_imported_data(
    device_settings: Optional[schemas.DeviceSettings],
    vout_table: Sequence[schemas.VoutEntry] = (),
    stp_data: Sequence[schemas.TestParameter] = (),
) -> schemas.ValidationReport:
    """
    Advisory range checks. Only present fields are checked; the report never
    stops an import.
    """
    errors: List[str] = []
    warnings: List[str] = []
    settings = device_settings or schemas.DeviceSettings()

    if settings.freefall is not None and not _within(settings.freefall, FREEFALL_RANGE):
        errors.append("Freefall value must be between 0 and 1000 ms")
    if settings.hptf is not None and not _within(settings.hptf, HPTF_RANGE):
        errors.append("HPTF value must be between 0 and 10000 Hz")
    if settings.harmonic is not None and settings.harmonic not in HARMONIC_VALUES:
        errors.append("Harmonic value must be 0, 1, or 2")
    if settings.duration_ms is not None and not _within(settings.duration_ms, DURATION_RANGE):
        errors.append("Duration must be between 1000 and 60000 ms")

    # quantity has no upper bound here, the dashboard only hints at 1-100
    for index, item in enumerate(stp_data):
        if not (item.symbol or item.name):
            errors.append(f"Row {index + 1}: Missing symbol or name")
        errors.extend(_check_row_ranges(item, f"Row {index + 1}"))

    for index, entry in enumerate(vout_table):
        if not entry.symbol:
            errors.append(f"Vout Table Row {index + 1}: Missing symbol")
        errors.extend(_check_row_ranges(entry, f"Vout Table Row {index + 1}"))

    return schemas.ValidationReport(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        summary=schemas.ValidationSummary(
            total_errors=len(errors),
            total_warnings=len(warnings),
            device_settings_valid=bool(settings.set_values()),
            stp_data_valid=len(stp_data) > 0,
            vout_table_valid=len(vout_table) > 0,
        ),
    )


def validate_snapshot(snapshot: schemas.ConfigSnapshot) -> schemas.ValidationReport:
    return validate_imported_data(snapshot.device_settings, snapshot.vout_table, snapshot.stp_data)


def _check_row_ranges(row, context: str) -> List[str]:
    errors = []
    if row.vout_base is not None and not _within(row.vout_base, VOUT_BASE_RANGE):
        errors.append(f"{context}: Vout base must be between 0 and 10V")
    if row.freq is not None and not _within(row.freq, FREQ_RANGE):
        errors.append(f"{context}: Frequency must be between 1 and 10000 Hz")
    return errors


def _within(value: schemas.Number, bounds) -> bool:
    low, high = bounds
    return low <= value <= high


def _format_megabytes(limit: int) -> str:
    megabytes = limit / (1024 * 1024)
    if megabytes.is_integer():
        return f"{int(megabytes)}MB"
    return f"{megabytes:.1f}MB"
