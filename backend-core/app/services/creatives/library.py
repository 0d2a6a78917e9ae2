"""Media library helpers: label carry-forward, label edits, per-asset ad usage and filtering."""
from __future__ import annotations

from typing import Any, Iterable, Optional

from .models import Asset, PerformanceRecord

DEFAULT_CATEGORIES = ["Brand", "Product", "Lifestyle", "Testimonial", "Demo"]

LIBRARY_VIEWS = ("in_ads", "all", "video", "image")


def carry_forward_labels(previous_assets: Iterable[Asset], new_assets: Iterable[Asset]) -> list[Asset]:
    """
    Re-apply labels and stored thumbnails from the previous load onto a
    freshly parsed asset set.

    Every id present in both sets keeps its creative name, category and
    thumbnail URL; ids that are not in the new set disappear with them.
    """
    existing: dict[str, Asset] = {asset.asset_id: asset for asset in previous_assets}

    merged: list[Asset] = []
    for asset in new_assets:
        previous = existing.get(asset.asset_id)
        if previous is None:
            merged.append(asset)
            continue
        merged.append(
            asset.with_labels(
                creative_name=previous.creative_name,
                category=previous.category,
                thumbnail_url=previous.thumbnail_url or asset.thumbnail_url,
            )
        )
    return merged


def apply_label_update(
    assets: Iterable[Asset],
    asset_id: str,
    creative_name: Optional[str] = None,
    category: Optional[str] = None,
) -> list[Asset]:
    """Return a new asset list with one asset's labels replaced. Unknown ids raise KeyError."""
    updated: list[Asset] = []
    found = False
    for asset in assets:
        if asset.asset_id == asset_id:
            asset = asset.with_labels(creative_name=creative_name, category=category)
            found = True
        updated.append(asset)
    if not found:
        raise KeyError(asset_id)
    return updated


def categories_in_use(assets: Iterable[Asset]) -> list[str]:
    return sorted({asset.category for asset in assets if asset.category})


def available_categories(assets: Iterable[Asset]) -> list[str]:
    """Default categories followed by any custom ones already assigned."""
    custom = [c for c in categories_in_use(assets) if c not in DEFAULT_CATEGORIES]
    return [*DEFAULT_CATEGORIES, *custom]


def summarize_asset_usage(records: Iterable[PerformanceRecord]) -> dict[str, dict[str, Any]]:
    """
    Where each asset (raw video_asset_ids value) runs: campaigns, ad groups,
    targets and its ads sorted by sales.
    """
    usage: dict[str, dict[str, Any]] = {}
    for record in records:
        if not record.video_asset_ids:
            continue
        info = usage.setdefault(
            record.video_asset_ids,
            {"campaigns": [], "ad_groups": [], "targets": [], "ads": [], "ad_count": 0},
        )

        if record.campaign_name and record.campaign_name not in info["campaigns"]:
            info["campaigns"].append(record.campaign_name)
        if record.ad_group_name and record.ad_group_name not in info["ad_groups"]:
            info["ad_groups"].append(record.ad_group_name)

        if record.ad_name:
            info["ads"].append(
                {
                    "name": record.ad_name,
                    "sales": record.sales,
                    "spend": record.spend,
                    "impressions": record.impressions,
                    "roas": record.sales / record.spend if record.spend > 0 else 0.0,
                }
            )

        if record.keyword_text:
            target = f"KW: {record.keyword_text}"
        elif record.product_targeting_id:
            target = "ASIN Target"
        else:
            target = ""
        if target and target not in info["targets"]:
            info["targets"].append(target)

        info["ad_count"] += 1

    for info in usage.values():
        info["ads"].sort(key=lambda ad: ad["sales"], reverse=True)
    return usage


def filter_assets(
    assets: Iterable[Asset],
    usage: dict[str, dict[str, Any]],
    view: str = "in_ads",
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> list[Asset]:
    """Library filter: view (in_ads/all/video/image), exact category, free-text search."""
    if view not in LIBRARY_VIEWS:
        raise ValueError(f"Unknown library view '{view}'. Expected one of {LIBRARY_VIEWS}")

    query = (search or "").strip().lower()
    result: list[Asset] = []
    for asset in assets:
        if view == "in_ads" and asset.asset_id not in usage:
            continue
        if view == "video" and asset.asset_type != "Video":
            continue
        if view == "image" and asset.asset_type == "Video":
            continue
        if category and asset.category != category:
            continue
        if query:
            haystack = " ".join(
                [asset.asset_name, asset.asset_id, asset.creative_name, asset.category]
            ).lower()
            if query not in haystack:
                continue
        result.append(asset)
    return result
