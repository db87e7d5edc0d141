from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from aquatron import schemas

DEVICE_SETTINGS_SHEET = "Device Settings"
BASIC_SETTINGS_SHEET = "Basic Settings"
VOUT_TABLE_SHEET = "Vout Table"
STP_SHEET = "Software Test Parameters"
STP_DEVICE_SHEET = "STP for Device"
CONFIG_INFO_SHEET = "Configuration Info"
BACKUP_INFO_SHEET = "Backup Info"
SUMMARY_SHEET = "Summary"
STATISTICS_SHEET = "Statistics"

VOUT_COLUMNS = ("symbol", "vout_base", "freq")
STP_COLUMNS = ("symbol", "name", "quantity", "vout_base", "freq")
DEVICE_STP_COLUMNS = ("symbol", "quantity", "vout_base", "freq")


class DeviceParameter(NamedTuple):
    label: str
    field: str
    unit: str
    description: str


DEVICE_PARAMETERS: Tuple[DeviceParameter, ...] = (
    DeviceParameter("Freefall", "freefall", "ms", "Freefall time in milliseconds"),
    DeviceParameter("HPTF", "hptf", "Hz", "High Power Test Frequency"),
    DeviceParameter("Harmonic", "harmonic", "", "Harmonic mode (0=FULL, 1=HALF, 2=QUARTER)"),
    DeviceParameter("Duration", "duration_ms", "ms", "Test duration in milliseconds"),
)

FIELD_BY_LABEL: Dict[str, str] = {param.label: param.field for param in DEVICE_PARAMETERS}


def parse_number(value: Any) -> Optional[schemas.Number]:
    """
    Lenient numeric parse for spreadsheet cells. Integers stay integers,
    numeric strings are parsed, anything else (including NaN) is None.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if "_" in text:
            # int()/float() accept digit separators, spreadsheets do not
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) or math.isinf(number) else number
    return None


# --- Export direction ---
def device_settings_to_rows(
    settings: schemas.DeviceSettings,
    *,
    include_description: bool = True,
) -> List[Dict[str, Any]]:
    rows = []
    for param in DEVICE_PARAMETERS:
        row = {
            "Parameter": param.label,
            "Value": getattr(settings, param.field) or 0,
            "Unit": param.unit,
        }
        if include_description:
            row["Description"] = param.description
        rows.append(row)
    return rows


def vout_table_to_rows(table: Iterable[schemas.VoutEntry]) -> List[Dict[str, Any]]:
    return [{column: getattr(entry, column) for column in VOUT_COLUMNS} for entry in table]


def test_parameters_to_rows(stp_data: Iterable[schemas.TestParameter]) -> List[Dict[str, Any]]:
    return [{column: getattr(item, column) for column in STP_COLUMNS} for item in stp_data]


def test_parameters_to_device_rows(stp_data: Iterable[schemas.TestParameter]) -> List[Dict[str, Any]]:
    """Shape expected by the device's sw-parameters endpoint."""
    rows = []
    for item in stp_data:
        device_row = schemas.DeviceStpRow(
            symbol=item.symbol,
            quantity=item.quantity or 100,
            vout_base=item.vout_base,
            freq=item.freq,
        )
        rows.append(device_row.model_dump())
    return rows


# --- Import direction ---
def device_settings_from_rows(
    rows: Iterable[Dict[str, Any]],
    *,
    allow_unknown_parameters: bool = False,
    warnings: Optional[List[str]] = None,
) -> schemas.DeviceSettings:
    """
    Reverse lookup of `Parameter` labels onto DeviceSettings fields.
    Unparseable values are reported into `warnings` when a list is passed and
    skipped either way.
    """
    values: Dict[str, schemas.Number] = {}
    extra: Dict[str, schemas.Number] = {}
    for row in rows:
        label = row.get("Parameter")
        if not label or "Value" not in row:
            continue
        label = str(label).strip()
        raw_value = row["Value"]
        value = parse_number(raw_value)
        if value is None:
            if warnings is not None:
                warnings.append(f"Invalid value for {label}: {raw_value}")
            continue

        field = FIELD_BY_LABEL.get(label)
        if field:
            values[field] = value
        elif allow_unknown_parameters:
            extra[label] = value
    return schemas.DeviceSettings(**values, extra_parameters=extra)


def vout_table_from_rows(
    rows: Iterable[Dict[str, Any]],
    warnings: Optional[List[str]] = None,
) -> List[schemas.VoutEntry]:
    table = []
    for index, row in enumerate(rows):
        fields = _coerce_row(row, ("vout_base", "freq"), f"Vout Table Row {index + 1}", warnings)
        table.append(schemas.VoutEntry(**fields))
    return table


def test_parameters_from_records(
    records: Iterable[Dict[str, Any]],
    warnings: Optional[List[str]] = None,
) -> List[schemas.TestParameter]:
    stp_data = []
    for index, record in enumerate(records):
        fields = _coerce_row(
            record,
            ("quantity", "vout_base", "freq"),
            f"Software Test Parameters Row {index + 1}",
            warnings,
        )
        stp_data.append(schemas.TestParameter(**fields))
    return stp_data


def _coerce_row(
    row: Dict[str, Any],
    numeric_fields: Tuple[str, ...],
    context: str,
    warnings: Optional[List[str]],
) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for key, raw in row.items():
        if key in ("symbol", "name"):
            text = str(raw).strip()
            if text:
                fields[key] = text
        elif key in numeric_fields:
            value = parse_number(raw)
            if value is None:
                if warnings is not None:
                    warnings.append(f"Invalid value for {context} {key}: {raw}")
                continue
            fields[key] = value
    return fields
