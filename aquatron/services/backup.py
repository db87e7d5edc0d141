from __future__ import annotations

import logging
from datetime import datetime, UTC
from typing import Optional

from openpyxl import Workbook

from aquatron import config, schemas
from aquatron.services import differ, excel_export, excel_import, schema_mapper
from aquatron.utils import excel_codec, filenames

logger = logging.getLogger(__name__)

MISSING_BACKUP_INFO_WARNING = "Backup file may not be a valid backup (missing backup info)"


def build_backup_workbook(
    snapshot: schemas.ConfigSnapshot,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Workbook:
    """
    Full export plus a `Backup Info` sheet, so restore can tell a backup
    apart from an ordinary export.
    """
    info = schemas.BackupInfo(
        timestamp=(now or datetime.now(UTC)).isoformat(),
        version=config.BACKUP_VERSION,
        **({"description": description} if description else {}),
    )
    sheets = excel_export.build_comprehensive_sheets(
        snapshot,
        {"isBackup": True, "timestamp": info.timestamp},
        include_extra_parameters=True,
    )
    sheets[schema_mapper.BACKUP_INFO_SHEET] = [
        {"Field": "Timestamp", "Value": info.timestamp},
        {"Field": "Version", "Value": info.version},
        {"Field": "Description", "Value": info.description},
    ]
    return excel_codec.build_container(sheets)


def create_data_backup(
    snapshot: schemas.ConfigSnapshot,
    filename: Optional[str] = None,
    description: Optional[str] = None,
) -> schemas.OperationResult:
    try:
        now = datetime.now(UTC)
        target = filenames.build_xlsx_filename(
            filename or filenames.dated_backup_filename(now), "aquatron_backup"
        )
        wb = build_backup_workbook(snapshot, description, now)
        excel_codec.write_to_file(wb, excel_export.export_dir() / target)
        return schemas.OperationResult(success=True, message="Backup created successfully", filename=target)
    except Exception as exc:
        logger.exception("Backup creation failed")
        return schemas.OperationResult(success=False, message="Failed to create backup", error=str(exc))


def restore_from_backup(filename: str, content: bytes) -> schemas.ImportResult:
    """
    Imports a backup with validation and unknown parameters admitted.
    Raises ExcelImportError for rejected uploads; any other failure is
    folded into the rejection as well.
    """
    try:
        result = excel_import.import_comprehensive_data(
            filename,
            content,
            allow_unknown_parameters=True,
            validate_data=True,
        )
    except excel_import.ExcelImportError:
        raise
    except Exception as exc:
        logger.exception("Restore failed")
        raise excel_import.ExcelImportError(
            schemas.OperationResult(success=False, message="Failed to restore from backup", error=str(exc))
        ) from exc

    if result.success and result.backup_info is None:
        result.warnings.append(MISSING_BACKUP_INFO_WARNING)
    return result


def compare_data_sets(
    original: schemas.ConfigSnapshot,
    updated: schemas.ConfigSnapshot,
) -> schemas.CompareResult:
    try:
        return schemas.CompareResult(success=True, differences=differ.compare_snapshots(original, updated))
    except Exception as exc:
        logger.exception("Data comparison failed")
        return schemas.CompareResult(success=False, error=str(exc))


def compare_files(
    original_name: str,
    original_content: bytes,
    updated_name: str,
    updated_content: bytes,
) -> schemas.CompareResult:
    original = excel_import.import_comprehensive_data(original_name, original_content)
    updated = excel_import.import_comprehensive_data(updated_name, updated_content)
    return compare_data_sets(original.to_snapshot(), updated.to_snapshot())
