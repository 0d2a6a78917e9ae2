"""Competitive (A/B) view: creatives competing for the same target, with a winner per target."""
from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from .analytics import UNCATEGORIZED, build_asset_index
from .metrics import MetricAccumulator
from .models import Asset, PerformanceRecord

MIN_SPEND_FOR_WINNER = 10.0

TARGET_CAMPAIGN = "campaign"
TARGET_AD_GROUP = "adgroup"
TARGET_CATEGORY = "category"
TARGET_KEYWORD = "keyword"
TARGET_ASIN = "asin"
TARGET_TYPES = (TARGET_CAMPAIGN, TARGET_AD_GROUP, TARGET_CATEGORY, TARGET_KEYWORD, TARGET_ASIN)

GROUP_SORT_KEYS = ("spend", "impressions", "creatives")

# Matches asin="B08XYZ1234", asin:B08XYZ1234 or a bare token. Any 10-character
# alphanumeric run qualifies, so unrelated ids can match too.
ASIN_EXPRESSION_RE = re.compile(r'(?:asin[=:]?"?)?([A-Z0-9]{10})(?:")?', re.I)
ASIN_TOKEN_RE = re.compile(r"([A-Z0-9]{10})", re.I)


class CreativeResult(MetricAccumulator):
    """One creative's accumulated metrics inside a competitive group."""

    def __init__(self, video_asset_id: str, creative_name: str):
        super().__init__()
        self.video_asset_id = video_asset_id
        self.creative_name = creative_name
        self.is_winner = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_asset_id": self.video_asset_id,
            "creative_name": self.creative_name,
            **self.metrics_dict(),
            "is_winner": self.is_winner,
        }


class CompetitiveGroup:
    """All creatives that ran against one target value."""

    def __init__(self, target: str, target_type: str, match_type: Optional[str] = None):
        self.target = target
        self.target_type = target_type
        self.match_type = match_type
        self.total_spend = 0.0
        self.total_impressions = 0
        self._creatives: dict[str, CreativeResult] = {}
        self.creatives: list[CreativeResult] = []

    @property
    def is_ab_test(self) -> bool:
        return len(self.creatives) >= 2

    @property
    def winner(self) -> Optional[CreativeResult]:
        return next((c for c in self.creatives if c.is_winner), None)

    def add_record(self, record: PerformanceRecord, creative_name: str) -> None:
        creative = self._creatives.get(record.video_asset_ids)
        if creative is None:
            creative = CreativeResult(record.video_asset_ids, creative_name)
            self._creatives[record.video_asset_ids] = creative
        creative.add_record(record)

        self.total_spend += record.spend
        self.total_impressions += record.impressions

    def finalize(self, min_spend_for_winner: float) -> None:
        """Derive ratios, flag the winner, then order creatives by ROAS."""
        best_roas = -1.0
        winner: Optional[CreativeResult] = None
        for creative in self._creatives.values():
            creative.calculate_rates()
            if creative.spend >= min_spend_for_winner and creative.roas > best_roas:
                best_roas = creative.roas
                winner = creative

        if winner is not None and len(self._creatives) > 1:
            winner.is_winner = True

        self.creatives = sorted(self._creatives.values(), key=lambda c: c.roas, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        winner = self.winner
        return {
            "target": self.target,
            "target_type": self.target_type,
            "match_type": self.match_type,
            "total_spend": self.total_spend,
            "total_impressions": self.total_impressions,
            "is_ab_test": self.is_ab_test,
            "winner_asset_id": winner.video_asset_id if winner else None,
            "creatives": [c.to_dict() for c in self.creatives],
        }


def extract_asin(expression: str, targeting_id: str = "") -> Optional[str]:
    """
    Pull an ASIN out of a product targeting expression, falling back to the
    targeting id. Returns the uppercased code or None.
    """
    if expression:
        match = ASIN_EXPRESSION_RE.search(expression)
        if match:
            return match.group(1).upper()
    if targeting_id:
        match = ASIN_TOKEN_RE.search(targeting_id)
        if match:
            return match.group(1).upper()
    return None


def resolve_target(
    record: PerformanceRecord,
    asset_index: dict[str, Asset],
    group_by: str,
) -> Optional[tuple[str, Optional[str]]]:
    """(target, match_type) for a record, or None when the record has no target."""
    if group_by == TARGET_CAMPAIGN:
        return (record.campaign_name, None) if record.campaign_name else None
    if group_by == TARGET_AD_GROUP:
        return (record.ad_group_name, None) if record.ad_group_name else None
    if group_by == TARGET_CATEGORY:
        asset = asset_index.get(record.video_asset_ids)
        return ((asset.category if asset else "") or UNCATEGORIZED, None)
    if group_by == TARGET_KEYWORD:
        return (record.keyword_text, record.match_type) if record.keyword_text else None
    if group_by == TARGET_ASIN:
        asin = extract_asin(record.product_targeting_expression, record.product_targeting_id)
        return (asin, None) if asin else None
    raise ValueError(f"Unknown target grouping '{group_by}'. Expected one of {TARGET_TYPES}")


def build_competitive_groups(
    records: Iterable[PerformanceRecord],
    asset_index: dict[str, Asset],
    group_by: str,
    min_spend_for_winner: float = MIN_SPEND_FOR_WINNER,
) -> list[CompetitiveGroup]:
    """
    Group records by target and compare the creatives inside each target.

    Creatives are keyed by the raw video_asset_ids value. A winner needs at
    least min_spend_for_winner spend and the strictly highest ROAS, and only
    groups with two or more creatives get one.
    """
    if group_by not in TARGET_TYPES:
        raise ValueError(f"Unknown target grouping '{group_by}'. Expected one of {TARGET_TYPES}")

    groups: dict[tuple[str, str, str], CompetitiveGroup] = {}
    for record in records:
        resolved = resolve_target(record, asset_index, group_by)
        if resolved is None:
            continue
        target, match_type = resolved

        key = (group_by, target, match_type or "")
        group = groups.get(key)
        if group is None:
            group = CompetitiveGroup(target, group_by, match_type)
            groups[key] = group

        asset = asset_index.get(record.video_asset_ids)
        creative_name = (asset.creative_name if asset else "") or record.video_asset_ids
        group.add_record(record, creative_name)

    for group in groups.values():
        group.finalize(min_spend_for_winner)

    return list(groups.values())


def filter_ab_tests(groups: Iterable[CompetitiveGroup]) -> list[CompetitiveGroup]:
    """Keep only targets where two or more creatives actually competed."""
    return [g for g in groups if g.is_ab_test]


def sort_competitive_groups(groups: list[CompetitiveGroup], sort_by: str = "spend") -> list[CompetitiveGroup]:
    if sort_by == "spend":
        key = lambda g: g.total_spend  # noqa: E731
    elif sort_by == "impressions":
        key = lambda g: g.total_impressions  # noqa: E731
    elif sort_by == "creatives":
        key = lambda g: len(g.creatives)  # noqa: E731
    else:
        raise ValueError(f"Unknown sort key '{sort_by}'. Expected one of {GROUP_SORT_KEYS}")
    return sorted(groups, key=key, reverse=True)


def summarize_competitive_groups(
    groups: list[CompetitiveGroup],
    min_spend_for_winner: float = MIN_SPEND_FOR_WINNER,
) -> dict[str, Any]:
    return {
        "total_targets": len(groups),
        "ab_tests": sum(1 for g in groups if g.is_ab_test),
        "winners": sum(1 for g in groups if g.winner is not None),
        "min_spend_for_winner": min_spend_for_winner,
    }


def build_ab_test_view(
    records: list[PerformanceRecord],
    assets: list[Asset],
    group_by: str = TARGET_AD_GROUP,
    sort_by: str = "spend",
    only_ab_tests: bool = True,
    min_spend_for_winner: float = MIN_SPEND_FOR_WINNER,
) -> dict[str, Any]:
    """JSON-ready A/B view with summary counts taken before filtering."""
    groups = build_competitive_groups(records, build_asset_index(assets), group_by, min_spend_for_winner)
    shown = filter_ab_tests(groups) if only_ab_tests else groups
    shown = sort_competitive_groups(shown, sort_by)
    summary = summarize_competitive_groups(groups, min_spend_for_winner)
    summary["showing"] = len(shown)
    return {
        "group_by": group_by,
        "sort_by": sort_by,
        "only_ab_tests": only_ab_tests,
        "summary": summary,
        "groups": [g.to_dict() for g in shown],
    }
