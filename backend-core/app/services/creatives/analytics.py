"""Performance view: join performance rows to labeled assets and aggregate per label."""
from __future__ import annotations

from typing import Any, Iterable

from .metrics import MetricAccumulator
from .models import Asset, PerformanceRecord

GROUP_BY_CREATIVE = "creative_label"
GROUP_BY_CATEGORY = "category"
PERFORMANCE_DIMENSIONS = (GROUP_BY_CREATIVE, GROUP_BY_CATEGORY)

UNLABELED = "Unlabeled"
UNCATEGORIZED = "Uncategorized"

SORT_FIELDS = (
    "impressions",
    "clicks",
    "spend",
    "sales",
    "orders",
    "units",
    "ctr",
    "conversion_rate",
    "cpc",
    "roas",
    "ad_count",
)


class AdBreakdown(MetricAccumulator):
    """One ad (name + campaign + ad group) inside an aggregated row."""

    def __init__(self, ad_name: str, campaign_name: str, ad_group_name: str):
        super().__init__()
        self.ad_name = ad_name
        self.campaign_name = campaign_name
        self.ad_group_name = ad_group_name

    def to_dict(self) -> dict[str, Any]:
        return {
            "ad_name": self.ad_name,
            "campaign_name": self.campaign_name,
            "ad_group_name": self.ad_group_name,
            **self.metrics_dict(),
        }


class AggregatedRow(MetricAccumulator):
    """Performance summed over every record sharing a creative label or category."""

    def __init__(self, name: str, category: str):
        super().__init__()
        self.name = name
        self.category = category
        self.ad_count = 0
        self._ads: dict[tuple[str, str, str], AdBreakdown] = {}
        self.ads: list[AdBreakdown] = []

    def add_record(self, record: PerformanceRecord) -> None:
        super().add_record(record)
        self.ad_count += 1

        if not record.ad_name:
            return
        key = (record.ad_name, record.campaign_name, record.ad_group_name)
        ad = self._ads.get(key)
        if ad is None:
            ad = AdBreakdown(*key)
            self._ads[key] = ad
        ad.add_record(record)

    def calculate_rates(self) -> None:
        super().calculate_rates()
        for ad in self._ads.values():
            ad.calculate_rates()
        self.ads = sorted(self._ads.values(), key=lambda a: a.spend, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            **self.metrics_dict(),
            "ad_count": self.ad_count,
            "ads": [ad.to_dict() for ad in self.ads],
        }


def build_asset_index(assets: Iterable[Asset]) -> dict[str, Asset]:
    """Map asset_id -> Asset. Ids are unique within one load."""
    return {asset.asset_id: asset for asset in assets}


def aggregate_by_dimension(
    records: Iterable[PerformanceRecord],
    asset_index: dict[str, Asset],
    dimension: str,
) -> list[AggregatedRow]:
    """
    Aggregate performance records per creative label or category.

    The asset lookup uses the raw video_asset_ids value; a multi-id string is
    one composite key and usually misses, landing in Unlabeled/Uncategorized.
    Groups are returned in first-seen order; use sort_aggregated_rows() to
    order them.
    """
    if dimension not in PERFORMANCE_DIMENSIONS:
        raise ValueError(f"Unknown dimension '{dimension}'. Expected one of {PERFORMANCE_DIMENSIONS}")

    groups: dict[str, AggregatedRow] = {}
    for record in records:
        asset = asset_index.get(record.video_asset_ids)
        creative_name = (asset.creative_name if asset else "") or UNLABELED
        category = (asset.category if asset else "") or UNCATEGORIZED

        key = creative_name if dimension == GROUP_BY_CREATIVE else category
        row = groups.get(key)
        if row is None:
            row = AggregatedRow(name=key, category=category)
            groups[key] = row
        row.add_record(record)

    for row in groups.values():
        row.calculate_rates()

    return list(groups.values())


def sort_aggregated_rows(
    rows: list[AggregatedRow],
    field: str = "spend",
    ascending: bool = False,
) -> list[AggregatedRow]:
    """Stable sort by one metric; equal values keep their original order."""
    if field not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field '{field}'. Expected one of {SORT_FIELDS}")
    return sorted(rows, key=lambda r: getattr(r, field), reverse=not ascending)


def compute_grand_totals(rows: Iterable[AggregatedRow]) -> dict[str, Any]:
    """Sum raw metrics over all groups, then derive the overall ratios once."""
    totals = MetricAccumulator()
    ad_count = 0
    for row in rows:
        totals.add_metrics(row)
        ad_count += row.ad_count
    totals.calculate_rates()
    return {**totals.metrics_dict(), "ad_count": ad_count}


def build_performance_view(
    records: list[PerformanceRecord],
    assets: list[Asset],
    dimension: str = GROUP_BY_CREATIVE,
    sort_field: str = "spend",
    ascending: bool = False,
) -> dict[str, Any]:
    """JSON-ready performance view: sorted rows plus grand totals."""
    rows = aggregate_by_dimension(records, build_asset_index(assets), dimension)
    ordered = sort_aggregated_rows(rows, sort_field, ascending)
    return {
        "group_by": dimension,
        "sort_field": sort_field,
        "ascending": ascending,
        "rows": [row.to_dict() for row in ordered],
        "totals": compute_grand_totals(rows),
    }
