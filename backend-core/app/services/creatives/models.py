"""Record types shared by the creatives parser, engine and store."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Optional

ASSET_TYPES = (
    "Video",
    "Custom Image",
    "Other Image",
    "Brand Logo",
    "Product Image",
)


class ParseError(ValueError):
    """Raised when an uploaded workbook cannot be decoded at all."""


@dataclass(frozen=True)
class Asset:
    asset_id: str
    asset_type: str
    asset_name: str = ""
    asset_url: str = ""
    creative_name: str = ""
    category: str = ""
    thumbnail_url: str = ""
    is_synthesized: bool = False

    @property
    def display_name(self) -> str:
        if self.asset_name:
            return self.asset_name
        return f"Video {self.asset_id}"

    def with_labels(
        self,
        creative_name: Optional[str] = None,
        category: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
    ) -> "Asset":
        changes: dict[str, str] = {}
        if creative_name is not None:
            changes["creative_name"] = creative_name
        if category is not None:
            changes["category"] = category
        if thumbnail_url is not None:
            changes["thumbnail_url"] = thumbnail_url
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["display_name"] = self.display_name
        return data


@dataclass(frozen=True)
class PerformanceRecord:
    """One ad / keyword / target row from the Sponsored Brands sheet."""

    video_asset_ids: str
    campaign_id: str = ""
    ad_group_id: str = ""
    ad_id: str = ""
    keyword_id: str = ""
    product_targeting_id: str = ""
    product_targeting_expression: str = ""
    campaign_name: str = ""
    ad_group_name: str = ""
    ad_name: str = ""
    keyword_text: str = ""
    match_type: str = ""
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    sales: float = 0.0
    orders: int = 0
    units: int = 0
    # Platform-computed ratios; kept for storage, never aggregated.
    ctr: float = 0.0
    conversion_rate: float = 0.0
    acos: float = 0.0
    cpc: float = 0.0
    roas: float = 0.0

    def asset_id_list(self) -> list[str]:
        return [part.strip() for part in self.video_asset_ids.split(",") if part.strip()]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ParseDiagnostics:
    has_assets: bool = False
    has_performance: bool = False
    source_sheet_name: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ParsedReport:
    assets: list[Asset]
    performance_records: list[PerformanceRecord]
    diagnostics: ParseDiagnostics

    def to_dict(self) -> dict[str, Any]:
        return {
            "assets": [a.to_dict() for a in self.assets],
            "performance_records": [r.to_dict() for r in self.performance_records],
            "diagnostics": self.diagnostics.to_dict(),
        }
