from __future__ import annotations

import json
import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl import Workbook

from aquatron import config, schemas
from aquatron.services import schema_mapper
from aquatron.utils import excel_codec, filenames

logger = logging.getLogger(__name__)

TEMPLATE_SYMBOLS = (
    "Li", "Ca", "Na", "Cl", "Fe", "Zn", "Cu", "Pb", "Mg", "Mn",
    "Cd", "K", "B", "F", "Mo", "Ni", "Se", "Si", "Ag", "As",
    "Hg", "P", "Al", "Cr", "Co", "Ba", "Am", "NO",
)
TEMPLATE_QUANTITY = 100
DATA_VERSION = "1.0"


def export_dir() -> Path:
    return Path(config.EXPORT_DIR)


def build_comprehensive_sheets(
    snapshot: schemas.ConfigSnapshot,
    options: Optional[Dict[str, Any]] = None,
    *,
    include_extra_parameters: bool = False,
) -> Dict[str, List[Dict[str, Any]]]:
    sheets: Dict[str, List[Dict[str, Any]]] = {}
    settings = snapshot.device_settings

    if settings.set_values():
        device_rows = schema_mapper.device_settings_to_rows(settings)
        if include_extra_parameters:
            device_rows.extend(
                {"Parameter": label, "Value": value, "Unit": "", "Description": ""}
                for label, value in settings.extra_parameters.items()
            )
        sheets[schema_mapper.DEVICE_SETTINGS_SHEET] = device_rows
    if snapshot.vout_table:
        sheets[schema_mapper.VOUT_TABLE_SHEET] = schema_mapper.vout_table_to_rows(snapshot.vout_table)
    if snapshot.stp_data:
        sheets[schema_mapper.STP_SHEET] = schema_mapper.test_parameters_to_rows(snapshot.stp_data)

    sheets[schema_mapper.CONFIG_INFO_SHEET] = [
        {"Field": "Export Date", "Value": _now_iso(), "Description": "Date and time of export"},
        {
            "Field": "Device Settings Count",
            "Value": len(settings.set_values()),
            "Description": "Number of device settings exported",
        },
        {
            "Field": "Vout Table Entries",
            "Value": len(snapshot.vout_table),
            "Description": "Number of vout table entries",
        },
        {
            "Field": "STP Parameters",
            "Value": len(snapshot.stp_data),
            "Description": "Number of software test parameters",
        },
        {"Field": "Format Version", "Value": config.EXCEL_FORMAT_VERSION, "Description": "Excel format version"},
        {
            "Field": "Export Options",
            "Value": json.dumps(options or {}, default=str),
            "Description": "Export configuration options",
        },
    ]
    return sheets


def build_comprehensive_workbook(
    snapshot: Optional[schemas.ConfigSnapshot],
    options: Optional[Dict[str, Any]] = None,
) -> Workbook:
    if snapshot is None:
        raise ValueError("No data provided for export")
    return excel_codec.build_container(build_comprehensive_sheets(snapshot, options))


def export_comprehensive_data(
    snapshot: Optional[schemas.ConfigSnapshot],
    filename: str = "aquatron_data.xlsx",
    options: Optional[Dict[str, Any]] = None,
) -> schemas.OperationResult:
    try:
        target = filenames.build_xlsx_filename(filename, "aquatron_data")
        excel_codec.write_to_file(build_comprehensive_workbook(snapshot, options), export_dir() / target)
        return schemas.OperationResult(success=True, message="Data exported successfully", filename=target)
    except Exception as exc:
        logger.exception("Export failed")
        return schemas.OperationResult(success=False, message="Failed to export data", error=str(exc))


def build_device_settings_workbook(
    device_settings: schemas.DeviceSettings,
    vout_table: List[schemas.VoutEntry],
) -> Workbook:
    sheets = {
        schema_mapper.BASIC_SETTINGS_SHEET: schema_mapper.device_settings_to_rows(
            device_settings, include_description=False
        ),
    }
    if vout_table:
        sheets[schema_mapper.VOUT_TABLE_SHEET] = schema_mapper.vout_table_to_rows(vout_table)
    return excel_codec.build_container(sheets)


def export_device_settings_only(
    device_settings: schemas.DeviceSettings,
    vout_table: List[schemas.VoutEntry],
    filename: str = "device_settings.xlsx",
) -> schemas.OperationResult:
    try:
        target = filenames.build_xlsx_filename(filename, "device_settings")
        wb = build_device_settings_workbook(device_settings, vout_table)
        excel_codec.write_to_file(wb, export_dir() / target)
        return schemas.OperationResult(
            success=True, message="Device settings exported successfully", filename=target
        )
    except Exception as exc:
        logger.exception("Device settings export failed")
        return schemas.OperationResult(
            success=False, message="Failed to export device settings", error=str(exc)
        )


def build_stp_device_workbook(stp_data: List[schemas.TestParameter]) -> Workbook:
    return excel_codec.build_container(
        {schema_mapper.STP_DEVICE_SHEET: schema_mapper.test_parameters_to_device_rows(stp_data)}
    )


def export_stp_for_device(
    stp_data: List[schemas.TestParameter],
    filename: str = "stp_for_device.xlsx",
) -> schemas.OperationResult:
    try:
        target = filenames.build_xlsx_filename(filename, "stp_for_device")
        excel_codec.write_to_file(build_stp_device_workbook(stp_data), export_dir() / target)
        return schemas.OperationResult(
            success=True, message="STP data exported for device communication", filename=target
        )
    except Exception as exc:
        logger.exception("STP export failed")
        return schemas.OperationResult(success=False, message="Failed to export STP data", error=str(exc))


def template_rows() -> List[Dict[str, Any]]:
    return [{"symbol": symbol, "quantity": TEMPLATE_QUANTITY} for symbol in TEMPLATE_SYMBOLS]


def build_template_workbook() -> Workbook:
    return excel_codec.build_container({schema_mapper.STP_SHEET: template_rows()})


def create_comprehensive_template(filename: str = "aquatron_template.xlsx") -> schemas.OperationResult:
    try:
        target = filenames.build_xlsx_filename(filename, "aquatron_template")
        excel_codec.write_to_file(build_template_workbook(), export_dir() / target)
        return schemas.OperationResult(success=True, message="Template created successfully", filename=target)
    except Exception as exc:
        logger.exception("Template creation failed")
        return schemas.OperationResult(success=False, message="Failed to create template", error=str(exc))


def build_summary_sheets(snapshot: schemas.ConfigSnapshot) -> Dict[str, List[Dict[str, Any]]]:
    sheets = {
        schema_mapper.SUMMARY_SHEET: [
            {"Metric": "Total Device Settings", "Value": len(snapshot.device_settings.set_values())},
            {"Metric": "Total STP Parameters", "Value": len(snapshot.stp_data)},
            {"Metric": "Total Vout Table Entries", "Value": len(snapshot.vout_table)},
            {"Metric": "Export Date", "Value": _now_iso()},
            {"Metric": "Data Version", "Value": DATA_VERSION},
        ]
    }
    if snapshot.stp_data:
        df = pd.DataFrame(schema_mapper.test_parameters_to_rows(snapshot.stp_data))
        numeric = df[["quantity", "vout_base", "freq"]].apply(pd.to_numeric, errors="coerce").fillna(0)
        sheets[schema_mapper.STATISTICS_SHEET] = [
            {"Statistic": "Average Quantity", "Value": float(numeric["quantity"].mean())},
            {"Statistic": "Average Vout Base", "Value": float(numeric["vout_base"].mean())},
            {"Statistic": "Average Frequency", "Value": float(numeric["freq"].mean())},
            {"Statistic": "Min Quantity", "Value": float(numeric["quantity"].min())},
            {"Statistic": "Max Quantity", "Value": float(numeric["quantity"].max())},
        ]
    return sheets


def build_summary_workbook(snapshot: schemas.ConfigSnapshot) -> Workbook:
    return excel_codec.build_container(build_summary_sheets(snapshot))


def export_data_summary(
    snapshot: schemas.ConfigSnapshot,
    filename: str = "aquatron_summary.xlsx",
) -> schemas.OperationResult:
    try:
        target = filenames.build_xlsx_filename(filename, "aquatron_summary")
        excel_codec.write_to_file(build_summary_workbook(snapshot), export_dir() / target)
        return schemas.OperationResult(success=True, message="Data summary exported successfully", filename=target)
    except Exception as exc:
        logger.exception("Summary export failed")
        return schemas.OperationResult(success=False, message="Failed to export data summary", error=str(exc))


def transform_data_for_export(snapshot: schemas.ConfigSnapshot, fmt: str = "excel") -> schemas.TransformResult:
    fmt = (fmt or "").lower()
    try:
        if fmt == "csv":
            return schemas.TransformResult(success=True, format="csv", data=_to_csv(snapshot))
        if fmt == "json":
            return schemas.TransformResult(success=True, format="json", data=snapshot.model_dump_json(indent=2))
        if fmt == "xml":
            return schemas.TransformResult(success=True, format="xml", data=_to_xml(snapshot))
        return schemas.TransformResult(success=True, format=fmt, data=snapshot.model_dump())
    except Exception as exc:
        logger.exception("Data transformation failed")
        return schemas.TransformResult(success=False, format=fmt, error=str(exc))


def _to_csv(snapshot: schemas.ConfigSnapshot) -> Dict[str, str]:
    settings = snapshot.device_settings.set_values()
    device_df = pd.DataFrame(
        [{"Parameter": key, "Value": value} for key, value in settings.items()],
        columns=["Parameter", "Value"],
    )
    stp_df = pd.DataFrame(
        schema_mapper.test_parameters_to_rows(snapshot.stp_data),
        columns=list(schema_mapper.STP_COLUMNS),
    )
    return {
        "device_settings": device_df.to_csv(index=False),
        "stp_data": stp_df.to_csv(index=False),
    }


def _to_xml(snapshot: schemas.ConfigSnapshot) -> str:
    root = ET.Element("AquatronData")
    device = ET.SubElement(root, "DeviceSettings")
    for key, value in snapshot.device_settings.set_values().items():
        ET.SubElement(device, _xml_tag(key)).text = str(value)

    stp = ET.SubElement(root, "STPData")
    for row in schema_mapper.test_parameters_to_rows(snapshot.stp_data):
        element = ET.SubElement(stp, "Element")
        for key, value in row.items():
            if value is None:
                continue
            ET.SubElement(element, key).text = str(value)

    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}'


def _xml_tag(value: str) -> str:
    tag = re.sub(r"[^\w.-]", "_", value)
    if not tag or not (tag[0].isalpha() or tag[0] == "_"):
        tag = f"_{tag}"
    return tag


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()
