"""Excel export of the creative performance and A/B test views."""
from __future__ import annotations

import tempfile
from typing import Any

import xlsxwriter

from .abtest import CompetitiveGroup
from .analytics import AggregatedRow

PERFORMANCE_COLUMNS = [
    ("Name", 40),
    ("Category", 20),
    ("Ads", 8),
    ("Impressions", 14),
    ("Clicks", 10),
    ("CTR", 10),
    ("Spend", 12),
    ("Sales", 12),
    ("Orders", 10),
    ("Units", 10),
    ("Conv. Rate", 12),
    ("CPC", 10),
    ("ROAS", 10),
]

AB_TEST_COLUMNS = [
    ("Target", 40),
    ("Match Type", 12),
    ("Creative", 40),
    ("Video Asset ID", 24),
    ("Impressions", 14),
    ("Clicks", 10),
    ("CTR", 10),
    ("Spend", 12),
    ("Sales", 12),
    ("Orders", 10),
    ("Conv. Rate", 12),
    ("ROAS", 10),
    ("Winner", 10),
]


def build_creatives_workbook(
    rows: list[AggregatedRow],
    totals: dict[str, Any],
    groups: list[CompetitiveGroup],
    currency_symbol: str = "$",
) -> str:
    """
    Write the performance rows (with per-ad detail) and A/B groups to a temp .xlsx.

    CTR and conversion rate are stored as percentages (0-100) by the engine,
    so they are written divided by 100 under a percent format.

    Returns:
        Path to the generated workbook.
    """
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=".xlsx")
    tmp_path = tmp.name
    tmp.close()

    workbook = xlsxwriter.Workbook(tmp_path, {"nan_inf_to_errors": True})
    try:
        header_fmt = workbook.add_format(
            {"bold": True, "bg_color": "#0066CC", "font_color": "#FFFFFF", "border": 1, "align": "center", "valign": "vcenter"}
        )
        text_fmt = workbook.add_format({"border": 1})
        bold_fmt = workbook.add_format({"border": 1, "bold": True})
        detail_fmt = workbook.add_format({"border": 1, "italic": True, "font_color": "#555555", "indent": 1})
        int_fmt = workbook.add_format({"border": 1, "num_format": "#,##0"})
        money_fmt = workbook.add_format({"border": 1, "num_format": f"{currency_symbol}#,##0.00"})
        pct_fmt = workbook.add_format({"border": 1, "num_format": "0.00%"})
        ratio_fmt = workbook.add_format({"border": 1, "num_format": "0.00"})
        total_fmt = workbook.add_format({"border": 1, "bold": True, "bg_color": "#F2F2F2"})
        winner_fmt = workbook.add_format({"border": 1, "bold": True, "bg_color": "#C6EFCE", "font_color": "#006100"})

        def write_metrics(ws, r: int, start_col: int, metrics: dict[str, Any], with_units: bool) -> int:
            c = start_col
            ws.write_number(r, c, metrics["impressions"], int_fmt)
            ws.write_number(r, c + 1, metrics["clicks"], int_fmt)
            ws.write_number(r, c + 2, metrics["ctr"] / 100, pct_fmt)
            ws.write_number(r, c + 3, metrics["spend"], money_fmt)
            ws.write_number(r, c + 4, metrics["sales"], money_fmt)
            ws.write_number(r, c + 5, metrics["orders"], int_fmt)
            c += 6
            if with_units:
                ws.write_number(r, c, metrics["units"], int_fmt)
                c += 1
            ws.write_number(r, c, metrics["conversion_rate"] / 100, pct_fmt)
            c += 1
            if with_units:
                ws.write_number(r, c, metrics["cpc"], money_fmt)
                c += 1
            ws.write_number(r, c, metrics["roas"], ratio_fmt)
            return c + 1

        # Performance sheet
        ws = workbook.add_worksheet("Performance")
        for c, (title, width) in enumerate(PERFORMANCE_COLUMNS):
            ws.write_string(0, c, title, header_fmt)
            ws.set_column(c, c, width)

        r = 1
        for row in rows:
            data = row.to_dict()
            ws.write_string(r, 0, row.name, bold_fmt)
            ws.write_string(r, 1, row.category, text_fmt)
            ws.write_number(r, 2, row.ad_count, int_fmt)
            write_metrics(ws, r, 3, data, with_units=True)
            r += 1
            for ad in data["ads"]:
                ws.write_string(r, 0, ad["ad_name"], detail_fmt)
                ws.write_string(r, 1, f"{ad['campaign_name']} / {ad['ad_group_name']}", detail_fmt)
                ws.write_blank(r, 2, None, text_fmt)
                write_metrics(ws, r, 3, ad, with_units=True)
                r += 1

        ws.write_string(r, 0, "Total", total_fmt)
        ws.write_blank(r, 1, None, total_fmt)
        ws.write_number(r, 2, totals.get("ad_count", 0), total_fmt)
        write_metrics(ws, r, 3, totals, with_units=True)
        ws.freeze_panes(1, 1)

        # A/B test sheet
        ws = workbook.add_worksheet("AB Tests")
        for c, (title, width) in enumerate(AB_TEST_COLUMNS):
            ws.write_string(0, c, title, header_fmt)
            ws.set_column(c, c, width)

        r = 1
        for group in groups:
            for creative in group.creatives:
                data = creative.to_dict()
                name_fmt = winner_fmt if creative.is_winner else text_fmt
                ws.write_string(r, 0, group.target, text_fmt)
                ws.write_string(r, 1, group.match_type or "", text_fmt)
                ws.write_string(r, 2, creative.creative_name, name_fmt)
                ws.write_string(r, 3, creative.video_asset_id, text_fmt)
                write_metrics(ws, r, 4, data, with_units=False)
                ws.write_string(r, 12, "Winner" if creative.is_winner else "", name_fmt)
                r += 1
        ws.freeze_panes(1, 0)
    finally:
        workbook.close()

    return tmp_path
