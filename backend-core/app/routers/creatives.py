"""Creative performance router: bulk report upload, media library, performance and A/B views."""
import os
import tempfile
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, UploadFile, File, HTTPException, Query
from fastapi.responses import FileResponse
from pydantic import BaseModel

from ..auth import require_user
from ..config import settings
from ..usage_logging import error_logger, usage_logger
from ..services.creatives import (
    ParseError,
    read_bulk_report_path,
    carry_forward_labels,
    apply_label_update,
    available_categories,
    summarize_asset_usage,
    filter_assets,
    build_asset_index,
    aggregate_by_dimension,
    sort_aggregated_rows,
    compute_grand_totals,
    build_performance_view,
    build_competitive_groups,
    filter_ab_tests,
    sort_competitive_groups,
    build_ab_test_view,
    build_creatives_workbook,
    label_store,
)

router = APIRouter(prefix="/creatives", tags=["creatives"])

INVALID_FILE_MESSAGE = "Failed to parse the Excel file. Please make sure it's a valid Amazon Bulk Report."


class LabelUpdate(BaseModel):
    creative_name: Optional[str] = None
    category: Optional[str] = None


@router.get("/healthz")
def health():
    """Health check endpoint."""
    return {"ok": True}


def _load_user_data(user_id: str) -> dict:
    loaded = label_store.load(user_id)
    if loaded.get("error"):
        raise HTTPException(status_code=502, detail=f"Could not load saved data: {loaded['error']}")
    return loaded


@router.post("/upload")
async def upload_report(
    file: UploadFile = File(...),
    user=Depends(require_user),
):
    """
    Parse a bulk report and replace the user's stored assets and performance rows.

    Labels already assigned to assets that are still in the new report are kept.
    A file that cannot be decoded leaves the stored data untouched.
    """
    started = time.time()
    user_id = user.get("sub")
    total = 0
    chunk_size = 2 * 1024 * 1024

    with tempfile.NamedTemporaryFile(delete=False, suffix=".xlsx") as tmp:
        tmp_path = tmp.name
        while True:
            chunk = await file.read(chunk_size)
            if not chunk:
                break
            total += len(chunk)
            if total > settings.max_upload_mb * 1024 * 1024:
                await file.close()
                tmp.close()
                os.unlink(tmp_path)
                raise HTTPException(status_code=413, detail=f"File too large (max {settings.max_upload_mb}MB)")
            tmp.write(chunk)
    await file.close()

    try:
        report = read_bulk_report_path(tmp_path, file.filename or "upload.xlsx")
    except ParseError as exc:
        usage_logger.log(
            {
                "user_id": user_id,
                "user_email": user.get("email"),
                "tool": "creatives",
                "file_name": file.filename,
                "file_size_bytes": total,
                "status": "error",
                "error": str(exc),
                "duration_ms": int((time.time() - started) * 1000),
                "app_version": settings.app_version,
            }
        )
        raise HTTPException(status_code=400, detail=INVALID_FILE_MESSAGE) from exc
    finally:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass

    previous = label_store.load(user_id)
    if previous.get("error"):
        # Saving now would wipe the stored labels we failed to read.
        assets = report.assets
        save_result = {"success": False, "error": f"Could not load existing labels: {previous['error']}"}
    else:
        assets = carry_forward_labels(previous["assets"], report.assets)
        save_result = label_store.save(user_id, assets, report.performance_records)

    if not save_result.get("success"):
        error_logger.log(
            {
                "occurred_at": datetime.now(timezone.utc).isoformat(),
                "tool": "creatives",
                "severity": "warning",
                "message": save_result.get("error"),
                "route": "/creatives/upload",
                "method": "POST",
                "user_id": user_id,
                "user_email": user.get("email"),
            }
        )

    usage_logger.log(
        {
            "user_id": user_id,
            "user_email": user.get("email"),
            "tool": "creatives",
            "file_name": file.filename,
            "file_size_bytes": total,
            "rows_processed": len(report.performance_records),
            "campaigns": len({r.campaign_name for r in report.performance_records if r.campaign_name}),
            "assets_count": len(assets),
            "source_sheet": report.diagnostics.source_sheet_name,
            "status": "success" if save_result.get("success") else "unsaved",
            "duration_ms": int((time.time() - started) * 1000),
            "app_version": settings.app_version,
        }
    )

    return {
        "assets": [asset.to_dict() for asset in assets],
        "assets_count": len(assets),
        "labeled_count": sum(1 for asset in assets if asset.creative_name),
        "performance_count": len(report.performance_records),
        "diagnostics": report.diagnostics.to_dict(),
        "saved": bool(save_result.get("success")),
        "save_error": save_result.get("error"),
    }


@router.get("/assets")
def list_assets(
    view: str = Query(default="in_ads"),
    category: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    user=Depends(require_user),
):
    """Media library listing with per-asset ad usage."""
    loaded = _load_user_data(user.get("sub"))
    assets = loaded["assets"]
    usage = summarize_asset_usage(loaded["performance_records"])

    try:
        shown = filter_assets(assets, usage, view=view, category=category, search=search)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    empty_usage = {"campaigns": [], "ad_groups": [], "targets": [], "ads": [], "ad_count": 0}
    return {
        "total_assets": len(assets),
        "labeled_count": sum(1 for asset in assets if asset.creative_name),
        "categories": available_categories(assets),
        "assets": [
            {**asset.to_dict(), "usage": usage.get(asset.asset_id, empty_usage)}
            for asset in shown
        ],
    }


@router.patch("/assets/{asset_id}/labels")
def update_labels(
    asset_id: str,
    payload: LabelUpdate,
    user=Depends(require_user),
):
    user_id = user.get("sub")
    loaded = _load_user_data(user_id)
    try:
        assets = apply_label_update(
            loaded["assets"],
            asset_id,
            creative_name=payload.creative_name,
            category=payload.category,
        )
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown asset '{asset_id}'") from exc

    result = label_store.update_asset_label(
        user_id,
        asset_id,
        creative_name=payload.creative_name,
        category=payload.category,
    )
    if not result.get("success"):
        raise HTTPException(status_code=502, detail="Failed to update asset labels")

    updated = next(asset for asset in assets if asset.asset_id == asset_id)
    return {
        "ok": True,
        "asset_id": asset_id,
        "asset": updated.to_dict(),
        "categories": available_categories(assets),
    }


@router.put("/assets/{asset_id}/thumbnail")
async def upload_thumbnail(
    asset_id: str,
    file: UploadFile = File(...),
    user=Depends(require_user),
):
    """Store a client-generated thumbnail image for an asset."""
    user_id = user.get("sub")
    image_bytes = await file.read()
    await file.close()

    url = label_store.upload_thumbnail(user_id, asset_id, image_bytes)
    if not url:
        raise HTTPException(status_code=502, detail="Failed to store thumbnail")

    result = label_store.update_asset_thumbnail(user_id, asset_id, url)
    if not result.get("success"):
        raise HTTPException(status_code=502, detail="Failed to save thumbnail URL")
    return {"ok": True, "asset_id": asset_id, "thumbnail_url": url}


@router.get("/performance")
def performance_view(
    group_by: str = Query(default="creative_label"),
    sort_field: str = Query(default="spend"),
    ascending: bool = Query(default=False),
    user=Depends(require_user),
):
    loaded = _load_user_data(user.get("sub"))
    try:
        return build_performance_view(
            loaded["performance_records"],
            loaded["assets"],
            dimension=group_by,
            sort_field=sort_field,
            ascending=ascending,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/abtests")
def ab_test_view(
    group_by: str = Query(default="adgroup"),
    sort_by: str = Query(default="spend"),
    only_ab_tests: bool = Query(default=True),
    user=Depends(require_user),
):
    loaded = _load_user_data(user.get("sub"))
    try:
        return build_ab_test_view(
            loaded["performance_records"],
            loaded["assets"],
            group_by=group_by,
            sort_by=sort_by,
            only_ab_tests=only_ab_tests,
            min_spend_for_winner=settings.min_spend_for_winner,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/export", response_class=FileResponse)
def export_workbook(
    group_by: str = Query(default="creative_label"),
    ab_group_by: str = Query(default="adgroup"),
    user=Depends(require_user),
):
    """Download the performance and A/B views as an Excel workbook."""
    loaded = _load_user_data(user.get("sub"))
    records = loaded["performance_records"]
    index = build_asset_index(loaded["assets"])

    try:
        rows = aggregate_by_dimension(records, index, group_by)
        groups = build_competitive_groups(records, index, ab_group_by, settings.min_spend_for_winner)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        workbook_path = build_creatives_workbook(
            sort_aggregated_rows(rows),
            compute_grand_totals(rows),
            sort_competitive_groups(filter_ab_tests(groups)),
            settings.currency_symbol,
        )
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Workbook generation failed: {exc}") from exc

    return FileResponse(
        workbook_path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"creative_performance_{datetime.now(timezone.utc):%Y%m%d}.xlsx",
    )
