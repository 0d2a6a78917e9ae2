"""Supabase-backed store for a user's assets, labels, thumbnails and performance rows."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from supabase import Client, create_client

from ...config import settings
from .models import Asset, PerformanceRecord

logger = logging.getLogger(__name__)

ASSETS_TABLE = "brand_assets"
RECORDS_TABLE = "campaign_data"
THUMBNAIL_BUCKET = "thumbnails"
INSERT_BATCH_SIZE = 500
# PostgREST caps each response at 1000 rows by default.
SELECT_PAGE_SIZE = 1000


class LabelStoreError(Exception):
    pass


def _asset_to_row(user_id: str, asset: Asset) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "asset_id": asset.asset_id,
        "asset_type": asset.asset_type,
        "asset_name": asset.asset_name,
        "asset_url": asset.asset_url,
        "creative_name": asset.creative_name or None,
        "category": asset.category or None,
        "thumbnail_url": asset.thumbnail_url or None,
        "is_synthesized": asset.is_synthesized,
    }


def _row_to_asset(row: dict[str, Any]) -> Asset:
    return Asset(
        asset_id=str(row.get("asset_id") or ""),
        asset_type=str(row.get("asset_type") or ""),
        asset_name=str(row.get("asset_name") or ""),
        asset_url=str(row.get("asset_url") or ""),
        creative_name=str(row.get("creative_name") or ""),
        category=str(row.get("category") or ""),
        thumbnail_url=str(row.get("thumbnail_url") or ""),
        is_synthesized=bool(row.get("is_synthesized") or False),
    )


def _record_to_row(user_id: str, record: PerformanceRecord) -> dict[str, Any]:
    return {"user_id": user_id, **record.to_dict()}


def _row_to_record(row: dict[str, Any]) -> PerformanceRecord:
    def text(key: str) -> str:
        return str(row.get(key) or "")

    def count(key: str) -> int:
        return int(float(row.get(key) or 0))

    def decimal(key: str) -> float:
        return float(row.get(key) or 0)

    return PerformanceRecord(
        video_asset_ids=text("video_asset_ids"),
        campaign_id=text("campaign_id"),
        ad_group_id=text("ad_group_id"),
        ad_id=text("ad_id"),
        keyword_id=text("keyword_id"),
        product_targeting_id=text("product_targeting_id"),
        product_targeting_expression=text("product_targeting_expression"),
        campaign_name=text("campaign_name"),
        ad_group_name=text("ad_group_name"),
        ad_name=text("ad_name"),
        keyword_text=text("keyword_text"),
        match_type=text("match_type"),
        impressions=count("impressions"),
        clicks=count("clicks"),
        spend=decimal("spend"),
        sales=decimal("sales"),
        orders=count("orders"),
        units=count("units"),
        ctr=decimal("ctr"),
        conversion_rate=decimal("conversion_rate"),
        acos=decimal("acos"),
        cpc=decimal("cpc"),
        roas=decimal("roas"),
    )


class LabelStore:
    """
    External persistence for one user's loaded report.

    Every method returns a result dict instead of raising; callers decide
    how to surface failures. Nothing is retried.
    """

    def __init__(self, client: Optional[Client] = None) -> None:
        self._client = client

    def _get_client(self) -> Client:
        if self._client is None:
            if not settings.supabase_url or not settings.supabase_service_role:
                raise LabelStoreError("Supabase credentials are not configured.")
            self._client = create_client(settings.supabase_url, settings.supabase_service_role)
        return self._client

    def save(
        self,
        user_id: str,
        assets: Iterable[Asset],
        records: Iterable[PerformanceRecord],
    ) -> dict[str, Any]:
        """Replace everything stored for user_id with the given assets and records."""
        if not user_id:
            return {"success": False, "error": "Not authenticated"}

        try:
            db = self._get_client()
            db.table(ASSETS_TABLE).delete().eq("user_id", user_id).execute()
            db.table(RECORDS_TABLE).delete().eq("user_id", user_id).execute()

            asset_rows = [_asset_to_row(user_id, asset) for asset in assets]
            if asset_rows:
                db.table(ASSETS_TABLE).insert(asset_rows).execute()

            record_rows = [_record_to_row(user_id, record) for record in records]
            for start in range(0, len(record_rows), INSERT_BATCH_SIZE):
                db.table(RECORDS_TABLE).insert(record_rows[start : start + INSERT_BATCH_SIZE]).execute()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to save creatives data for user %s: %s", user_id, exc)
            return {"success": False, "error": str(exc)}

        return {"success": True}

    @staticmethod
    def _select_all(db: Client, table: str, user_id: str) -> list[dict[str, Any]]:
        """Read every row for user_id, one page at a time, in primary key order."""
        rows: list[dict[str, Any]] = []
        start = 0
        while True:
            resp = (
                db.table(table)
                .select("*")
                .eq("user_id", user_id)
                .order("id")
                .range(start, start + SELECT_PAGE_SIZE - 1)
                .execute()
            )
            page = resp.data if isinstance(resp.data, list) else []
            rows.extend(page)
            if len(page) < SELECT_PAGE_SIZE:
                return rows
            start += SELECT_PAGE_SIZE

    def load(self, user_id: str) -> dict[str, Any]:
        if not user_id:
            return {"assets": [], "performance_records": [], "error": "Not authenticated"}

        try:
            db = self._get_client()
            asset_rows = self._select_all(db, ASSETS_TABLE, user_id)
            record_rows = self._select_all(db, RECORDS_TABLE, user_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to load creatives data for user %s: %s", user_id, exc)
            return {"assets": [], "performance_records": [], "error": str(exc)}

        return {
            "assets": [_row_to_asset(row) for row in asset_rows],
            "performance_records": [_row_to_record(row) for row in record_rows],
        }

    def update_asset_label(
        self,
        user_id: str,
        asset_id: str,
        creative_name: Optional[str] = None,
        category: Optional[str] = None,
    ) -> dict[str, Any]:
        if not user_id:
            return {"success": False}

        updates: dict[str, Any] = {}
        if creative_name is not None:
            updates["creative_name"] = creative_name or None
        if category is not None:
            updates["category"] = category or None
        if not updates:
            return {"success": True}

        try:
            (
                self._get_client()
                .table(ASSETS_TABLE)
                .update(updates)
                .eq("user_id", user_id)
                .eq("asset_id", asset_id)
                .execute()
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to update labels for asset %s: %s", asset_id, exc)
            return {"success": False}
        return {"success": True}

    def update_asset_thumbnail(self, user_id: str, asset_id: str, url: str) -> dict[str, Any]:
        if not user_id:
            return {"success": False}

        try:
            (
                self._get_client()
                .table(ASSETS_TABLE)
                .update({"thumbnail_url": url})
                .eq("user_id", user_id)
                .eq("asset_id", asset_id)
                .execute()
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to update thumbnail for asset %s: %s", asset_id, exc)
            return {"success": False}
        return {"success": True}

    def upload_thumbnail(self, user_id: str, asset_id: str, image_bytes: bytes) -> Optional[str]:
        """Upsert a JPEG thumbnail into storage and return its public URL, or None."""
        if not user_id or not image_bytes:
            return None

        path = f"{user_id}/{asset_id}.jpg"
        try:
            bucket = self._get_client().storage.from_(THUMBNAIL_BUCKET)
            bucket.upload(path, image_bytes, {"content-type": "image/jpeg", "upsert": "true"})
            return bucket.get_public_url(path)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to upload thumbnail for asset %s: %s", asset_id, exc)
            return None


label_store = LabelStore()
