import logging
from typing import Callable, Optional, Tuple

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from openpyxl import Workbook

from aquatron import schemas
from aquatron.security import require_admin_access, require_read_access
from aquatron.services import backup, excel_export, excel_import, validation
from aquatron.utils import excel_codec, filenames

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

router = APIRouter(prefix="/excel", tags=["Excel"], dependencies=[Depends(require_read_access)])


async def _read_upload(upload: UploadFile) -> Tuple[str, bytes]:
    """Reads the whole upload in one go; partial reads are never parsed."""
    try:
        content = await upload.read()
    except OSError as exc:
        raise HTTPException(
            status_code=400,
            detail=schemas.OperationResult(success=False, message="Failed to read file", error=str(exc)).model_dump(),
        ) from exc
    finally:
        await upload.close()
    return upload.filename or "", content


def _download(build: Callable[[], Workbook], filename: str, failure_message: str) -> Response:
    """Renders the workbook in memory; nothing is written to the export directory."""
    try:
        content = excel_codec.to_bytes(build())
    except Exception as exc:
        logger.exception(failure_message)
        result = schemas.OperationResult(success=False, message=failure_message, error=str(exc))
        raise HTTPException(status_code=500, detail=result.model_dump()) from exc
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": filenames.content_disposition(filename)},
    )


def _rejected(exc: excel_import.ExcelImportError) -> HTTPException:
    return HTTPException(status_code=400, detail=exc.result.model_dump())


# --- Export ---
@router.post("/export", dependencies=[Depends(require_admin_access)])
def export_all(snapshot: schemas.ConfigSnapshot, filename: str = Query("aquatron_data.xlsx")):
    return _download(
        lambda: excel_export.build_comprehensive_workbook(snapshot, {"source": "api"}),
        filenames.build_xlsx_filename(filename, "aquatron_data"),
        "Failed to export data",
    )


@router.post("/export/device-settings", dependencies=[Depends(require_admin_access)])
def export_device_settings(snapshot: schemas.ConfigSnapshot, filename: str = Query("device_settings.xlsx")):
    return _download(
        lambda: excel_export.build_device_settings_workbook(snapshot.device_settings, snapshot.vout_table),
        filenames.build_xlsx_filename(filename, "device_settings"),
        "Failed to export device settings",
    )


@router.post("/export/device-stp", dependencies=[Depends(require_admin_access)])
def export_device_stp(stp_data: list[schemas.TestParameter], filename: str = Query("stp_for_device.xlsx")):
    return _download(
        lambda: excel_export.build_stp_device_workbook(stp_data),
        filenames.build_xlsx_filename(filename, "stp_for_device"),
        "Failed to export STP data",
    )


@router.post("/export/summary")
def export_summary(snapshot: schemas.ConfigSnapshot, filename: str = Query("aquatron_summary.xlsx")):
    return _download(
        lambda: excel_export.build_summary_workbook(snapshot),
        filenames.build_xlsx_filename(filename, "aquatron_summary"),
        "Failed to export data summary",
    )


@router.get("/template")
def download_template(filename: str = Query("aquatron_template.xlsx")):
    return _download(
        excel_export.build_template_workbook,
        filenames.build_xlsx_filename(filename, "aquatron_template"),
        "Failed to create template",
    )


@router.post("/transform/{fmt}", response_model=schemas.TransformResult)
def transform_snapshot(fmt: str, snapshot: schemas.ConfigSnapshot):
    return excel_export.transform_data_for_export(snapshot, fmt)


@router.post("/backup", dependencies=[Depends(require_admin_access)])
def create_backup(
    snapshot: schemas.ConfigSnapshot,
    filename: Optional[str] = Query(None),
    description: Optional[str] = Query(None),
):
    return _download(
        lambda: backup.build_backup_workbook(snapshot, description),
        filenames.build_xlsx_filename(filename or filenames.dated_backup_filename(), "aquatron_backup"),
        "Failed to create backup",
    )


# --- Import ---
@router.post("/import", response_model=schemas.ImportResult, dependencies=[Depends(require_admin_access)])
async def import_all(
    file: UploadFile = File(...),
    allow_unknown_parameters: bool = Query(False),
    validate_data: bool = Query(False),
):
    filename, content = await _read_upload(file)
    try:
        return excel_import.import_comprehensive_data(
            filename,
            content,
            allow_unknown_parameters=allow_unknown_parameters,
            validate_data=validate_data,
        )
    except excel_import.ExcelImportError as exc:
        raise _rejected(exc) from exc


@router.post(
    "/import/device-settings",
    response_model=schemas.ImportResult,
    dependencies=[Depends(require_admin_access)],
)
async def import_device_settings(file: UploadFile = File(...)):
    filename, content = await _read_upload(file)
    try:
        return excel_import.import_device_settings_only(filename, content)
    except excel_import.ExcelImportError as exc:
        raise _rejected(exc) from exc


@router.post("/import/stp", response_model=schemas.ImportResult, dependencies=[Depends(require_admin_access)])
async def import_stp(file: UploadFile = File(...)):
    filename, content = await _read_upload(file)
    try:
        return excel_import.import_stp_only(filename, content)
    except excel_import.ExcelImportError as exc:
        raise _rejected(exc) from exc


@router.post("/restore", response_model=schemas.ImportResult, dependencies=[Depends(require_admin_access)])
async def restore(file: UploadFile = File(...)):
    filename, content = await _read_upload(file)
    try:
        return backup.restore_from_backup(filename, content)
    except excel_import.ExcelImportError as exc:
        raise _rejected(exc) from exc


# --- Validation / comparison ---
@router.post("/validate", response_model=schemas.ValidationReport)
def validate_snapshot(snapshot: schemas.ConfigSnapshot):
    return validation.validate_snapshot(snapshot)


@router.post("/compare", response_model=schemas.CompareResult)
def compare(payload: schemas.CompareRequest):
    return backup.compare_data_sets(payload.original, payload.updated)


@router.post("/compare/files", response_model=schemas.CompareResult)
async def compare_uploads(original: UploadFile = File(...), updated: UploadFile = File(...)):
    original_name, original_content = await _read_upload(original)
    updated_name, updated_content = await _read_upload(updated)
    try:
        return backup.compare_files(original_name, original_content, updated_name, updated_content)
    except excel_import.ExcelImportError as exc:
        raise _rejected(exc) from exc
