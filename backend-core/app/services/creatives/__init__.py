"""Creative performance service modules."""

from .models import Asset, PerformanceRecord, ParseDiagnostics, ParsedReport, ParseError
from .parser import parse_bulk_report, read_bulk_report, read_bulk_report_path
from .analytics import (
    build_asset_index,
    aggregate_by_dimension,
    sort_aggregated_rows,
    compute_grand_totals,
    build_performance_view,
)
from .abtest import (
    MIN_SPEND_FOR_WINNER,
    extract_asin,
    build_competitive_groups,
    filter_ab_tests,
    sort_competitive_groups,
    build_ab_test_view,
)
from .library import (
    carry_forward_labels,
    apply_label_update,
    available_categories,
    summarize_asset_usage,
    filter_assets,
)
from .store import LabelStore, label_store
from .workbook import build_creatives_workbook

__all__ = [
    "Asset",
    "PerformanceRecord",
    "ParseDiagnostics",
    "ParsedReport",
    "ParseError",
    "parse_bulk_report",
    "read_bulk_report",
    "read_bulk_report_path",
    "build_asset_index",
    "aggregate_by_dimension",
    "sort_aggregated_rows",
    "compute_grand_totals",
    "build_performance_view",
    "MIN_SPEND_FOR_WINNER",
    "extract_asin",
    "build_competitive_groups",
    "filter_ab_tests",
    "sort_competitive_groups",
    "build_ab_test_view",
    "carry_forward_labels",
    "apply_label_update",
    "available_categories",
    "summarize_asset_usage",
    "filter_assets",
    "LabelStore",
    "label_store",
    "build_creatives_workbook",
]
