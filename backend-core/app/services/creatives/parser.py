"""Bulk report parser: brand assets + Sponsored Brands video performance rows."""
from __future__ import annotations

import io
import logging
import math
import re
from typing import Any

import pandas as pd

from .models import ASSET_TYPES, Asset, ParseDiagnostics, ParsedReport, ParseError, PerformanceRecord

logger = logging.getLogger(__name__)

ASSET_SHEET_NAME = "Brand Assets Data (Read-only)"
ASSET_HEADER_LABEL = "Asset Type"

# Header column of each asset field, relative to the "Asset Type" column.
ASSET_TYPE_OFFSET = 0
ASSET_ID_OFFSET = 2
ASSET_NAME_OFFSET = 3
ASSET_URL_OFFSET = 4

# Current multi-ad-group export first, legacy single-sheet export second.
PERFORMANCE_SHEET_NAMES = [
    "SB Multi Ad Group Campaigns",
    "Sponsored Brands Campaigns",
]

PERFORMANCE_COLUMN_MAP = {
    "campaign_id": ["Campaign ID", "Campaign Id"],
    "ad_group_id": ["Ad Group ID", "Ad Group Id"],
    "ad_id": ["Ad ID", "Ad Id"],
    "keyword_id": ["Keyword ID", "Keyword Id"],
    "product_targeting_id": ["Product Targeting ID", "Product Targeting Id"],
    "product_targeting_expression": [
        "Product Targeting Expression",
        "Resolved Product Targeting Expression (Informational only)",
    ],
    "campaign_name": ["Campaign Name", "Campaign Name (Informational only)"],
    "ad_group_name": ["Ad Group Name", "Ad Group Name (Informational only)"],
    # Older exports have no ad name; the campaign name stands in for it.
    "ad_name": ["Ad Name", "Campaign Name", "Campaign Name (Informational only)"],
    "keyword_text": ["Keyword Text"],
    "match_type": ["Match Type"],
    "video_asset_ids": ["Video Asset IDs", "Video Media IDs", "Video Asset ID"],
    "impressions": ["Impressions"],
    "clicks": ["Clicks"],
    "spend": ["Spend", "Cost"],
    "sales": ["Sales", "14 Day Total Sales", "Total Sales"],
    "orders": ["Orders", "14 Day Total Orders (#)", "Total Orders"],
    "units": ["Units", "14 Day Total Units (#)", "Total Units"],
    "ctr": ["Click-through Rate", "Click-Thru Rate (CTR)", "CTR"],
    "conversion_rate": ["Conversion Rate", "14 Day Conversion Rate"],
    "acos": ["ACOS", "Total Advertising Cost of Sales (ACOS)"],
    "cpc": ["CPC", "Cost Per Click (CPC)"],
    "roas": ["ROAS", "Total Return on Advertising Spend (ROAS)"],
}

COUNT_FIELDS = ("impressions", "clicks", "orders", "units")
DECIMAL_FIELDS = ("spend", "sales", "ctr", "conversion_rate", "acos", "cpc", "roas")

MISSING_ASSET_SHEET_WARNING = (
    'Missing "Brand Assets Data" sheet - make sure to check "Brand assets data" '
    "when downloading the bulk report"
)
MISSING_ASSET_HEADER_WARNING = "Could not find header row in Brand Assets Data sheet"
MISSING_PERFORMANCE_SHEET_WARNING = (
    'Missing Sponsored Brands data - make sure to check "Sponsored Brands data" and '
    '"Sponsored Brands multi-ad group data" when downloading'
)
NO_VIDEO_ROWS_WARNING = (
    "Found Sponsored Brands data but no video ads - you may not have any video "
    "campaigns running"
)

_NON_NUMERIC_RE = re.compile(r"[^\d.\-]")
_PAREN_NEGATIVE_RE = re.compile(r"^\((.*)\)$")


def _normalize_header(value: Any) -> str:
    """Trim, fold non-breaking spaces and collapse whitespace, lowercase."""
    return " ".join(str(value).replace("\xa0", " ").split()).lower()


def _text(value: Any) -> str:
    """Render a cell as a trimmed string; blanks become ''."""
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        # IDs stored as numbers come back as floats from some writers.
        if value.is_integer():
            return str(int(value))
    elif not isinstance(value, str) and pd.isna(value):
        return ""
    return str(value).strip()


def _number(value: Any) -> float:
    """Parse a metric cell, tolerating currency symbols, commas and percents."""
    if value is None or isinstance(value, bool):
        return float(value or 0)
    if isinstance(value, (int, float)):
        return 0.0 if pd.isna(value) else float(value)
    s = _PAREN_NEGATIVE_RE.sub(r"-\1", str(value).strip())
    try:
        number = float(s)
    except ValueError:
        s = _NON_NUMERIC_RE.sub("", s)
        try:
            number = float(s)
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def _find_sheet(excel_file: pd.ExcelFile, name: str) -> str | None:
    target = _normalize_header(name)
    for sheet in excel_file.sheet_names:
        if _normalize_header(sheet) == target:
            return sheet
    return None


def _read_sheet(excel_file: pd.ExcelFile, sheet: str, **kwargs: Any) -> pd.DataFrame:
    try:
        return excel_file.parse(sheet, dtype=object, **kwargs)
    except Exception as exc:  # noqa: BLE001
        raise ParseError(f"Unable to read sheet '{sheet}': {exc}") from exc


def map_performance_columns(columns: list[Any]) -> dict[str, list[Any]]:
    """
    Resolve each logical field to the sheet columns that can supply it.

    Built once per sheet; the per-row lookup walks the returned columns in
    alias priority order and takes the first non-empty value.
    """
    lookup: dict[str, Any] = {}
    for col in columns:
        lookup.setdefault(_normalize_header(col), col)

    column_map: dict[str, list[Any]] = {}
    for key, candidates in PERFORMANCE_COLUMN_MAP.items():
        found: list[Any] = []
        for candidate in candidates:
            col = lookup.get(_normalize_header(candidate))
            if col is not None and col not in found:
                found.append(col)
        column_map[key] = found
    return column_map


def _first_value(row: dict[Any, Any], columns: list[Any]) -> Any:
    for col in columns:
        value = row.get(col)
        if _text(value):
            return value
    return None


def parse_assets(excel_file: pd.ExcelFile, warnings: list[str]) -> list[Asset]:
    """Extract assets from the brand assets sheet; structural problems only warn."""
    sheet = _find_sheet(excel_file, ASSET_SHEET_NAME)
    if sheet is None:
        warnings.append(MISSING_ASSET_SHEET_WARNING)
        return []

    raw = _read_sheet(excel_file, sheet, header=None)
    rows = raw.values.tolist()

    header_idx = None
    for idx, row in enumerate(rows):
        if row and _text(row[0]) == ASSET_HEADER_LABEL:
            header_idx = idx
            break

    if header_idx is None:
        warnings.append(MISSING_ASSET_HEADER_WARNING)
        return []

    def cell(row: list[Any], offset: int) -> str:
        return _text(row[offset]) if len(row) > offset else ""

    assets: list[Asset] = []
    for row in rows[header_idx + 1 :]:
        asset_type = cell(row, ASSET_TYPE_OFFSET)
        if not asset_type:
            continue
        asset_id = cell(row, ASSET_ID_OFFSET)
        if not asset_id or asset_type not in ASSET_TYPES:
            continue
        assets.append(
            Asset(
                asset_id=asset_id,
                asset_type=asset_type,
                asset_name=cell(row, ASSET_NAME_OFFSET),
                asset_url=cell(row, ASSET_URL_OFFSET),
            )
        )
    return assets


def _build_record(row: dict[Any, Any], column_map: dict[str, list[Any]]) -> PerformanceRecord | None:
    video_asset_ids = _text(_first_value(row, column_map["video_asset_ids"]))
    if not video_asset_ids:
        return None

    values: dict[str, Any] = {"video_asset_ids": video_asset_ids}
    for key, columns in column_map.items():
        if key == "video_asset_ids":
            continue
        raw = _first_value(row, columns)
        if key in COUNT_FIELDS:
            values[key] = int(round(_number(raw)))
        elif key in DECIMAL_FIELDS:
            values[key] = _number(raw)
        else:
            values[key] = _text(raw)
    return PerformanceRecord(**values)


def parse_performance(
    excel_file: pd.ExcelFile,
    warnings: list[str],
) -> tuple[list[PerformanceRecord], str | None]:
    """
    Extract video-linked rows from the first Sponsored Brands sheet that has any.

    Returns (records, name of the sheet they came from).
    """
    present_sheets = [
        sheet
        for sheet in (_find_sheet(excel_file, name) for name in PERFORMANCE_SHEET_NAMES)
        if sheet is not None
    ]

    for sheet in present_sheets:
        df = _read_sheet(excel_file, sheet)
        if df.empty:
            continue
        column_map = map_performance_columns(df.columns.tolist())
        records = []
        for row in df.to_dict(orient="records"):
            record = _build_record(row, column_map)
            if record is not None:
                records.append(record)
        if records:
            return records, sheet

    if present_sheets:
        warnings.append(NO_VIDEO_ROWS_WARNING)
    else:
        warnings.append(MISSING_PERFORMANCE_SHEET_WARNING)
    return [], None


def synthesize_assets(records: list[PerformanceRecord]) -> list[Asset]:
    """Placeholder video assets for every distinct id referenced by the records."""
    seen: dict[str, Asset] = {}
    for record in records:
        for asset_id in record.asset_id_list():
            if asset_id not in seen:
                seen[asset_id] = Asset(asset_id=asset_id, asset_type="Video", is_synthesized=True)
    return list(seen.values())


def parse_bulk_report(excel_file: pd.ExcelFile) -> ParsedReport:
    """
    Parse a bulk report workbook into assets, performance records and diagnostics.

    Missing sheets or headers produce warnings and empty results; only an
    unreadable workbook raises ParseError.
    """
    diagnostics = ParseDiagnostics()

    assets = parse_assets(excel_file, diagnostics.warnings)
    records, source = parse_performance(excel_file, diagnostics.warnings)

    diagnostics.has_assets = bool(assets)
    diagnostics.has_performance = bool(records)
    diagnostics.source_sheet_name = source

    if records and not assets:
        assets = synthesize_assets(records)
        diagnostics.warnings.append(
            f"No brand assets found - created {len(assets)} placeholder assets from video "
            "asset IDs; asset names and thumbnails will be unavailable"
        )

    logger.info(
        "Parsed bulk report: %d assets, %d performance rows (sheet=%s, warnings=%d)",
        len(assets),
        len(records),
        source,
        len(diagnostics.warnings),
    )
    return ParsedReport(assets=assets, performance_records=records, diagnostics=diagnostics)


def _open_workbook(source: Any, file_name: str) -> pd.ExcelFile:
    try:
        return pd.ExcelFile(source, engine="openpyxl")
    except Exception as exc:  # noqa: BLE001
        raise ParseError(f"'{file_name}' is not a readable bulk report workbook: {exc}") from exc


def read_bulk_report(file_name: str, buf: bytes) -> ParsedReport:
    """Parse a bulk report from an in-memory upload."""
    excel_file = _open_workbook(io.BytesIO(buf), file_name)
    with excel_file:
        return parse_bulk_report(excel_file)


def read_bulk_report_path(path: str, original_name: str) -> ParsedReport:
    """Parse a bulk report from a file on disk."""
    excel_file = _open_workbook(path, original_name)
    with excel_file:
        return parse_bulk_report(excel_file)
