import io

import pytest
from openpyxl import Workbook

ASSET_HEADER = ["Asset Type", "Brand Entity ID", "Asset ID", "Asset Name", "Asset URL"]

PERFORMANCE_HEADER = [
    "Campaign ID",
    "Ad Group ID",
    "Ad ID",
    "Keyword ID",
    "Product Targeting ID",
    "Campaign Name",
    "Ad Group Name",
    "Ad Name",
    "Keyword Text",
    "Match Type",
    "Product Targeting Expression",
    "Video Asset IDs",
    "Impressions",
    "Clicks",
    "Spend",
    "Sales",
    "Orders",
    "Units",
    "ROAS",
]


def _workbook_bytes(sheets: dict) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def make_workbook():
    """Build an .xlsx in memory from {sheet title: list of rows}."""
    return _workbook_bytes


@pytest.fixture
def bulk_report_bytes():
    """A small but complete bulk report: brand assets plus SB multi ad group rows."""
    assets = [
        ["Brand Assets Data (Read-only)"],
        [],
        ASSET_HEADER,
        ["Video", "ENTITY1", "amzn1.video.A1", "hero.mp4", "https://cdn.example.com/hero.mp4"],
        ["Video", "ENTITY1", "amzn1.video.A2", "lifestyle.mp4", "https://cdn.example.com/life.mp4"],
        ["Custom Image", "ENTITY1", "amzn1.image.I1", "banner.png", ""],
        ["Audio", "ENTITY1", "amzn1.audio.X1", "jingle.mp3", ""],
        ["Video", "ENTITY1", "", "no-id.mp4", ""],
    ]
    performance = [
        PERFORMANCE_HEADER,
        ["111", "211", "311", "411", "", "Brooms SB", "Brooms AG", "Hero ad", "push broom", "Exact", "",
         "amzn1.video.A1", 1000, 50, "$25.00", "$100.00", 5, 6, 4.0],
        ["111", "211", "312", "412", "", "Brooms SB", "Brooms AG", "Life ad", "push broom", "Broad", "",
         "amzn1.video.A2", 500, 10, 12.5, 0, 0, 0, 0],
        ["111", "211", "313", "", "511", "Brooms SB", "Brooms AG", "Hero ad", "", "", 'asin="B08XYZ1234"',
         "amzn1.video.A1", 200, 4, 5, 20, 1, 1, 4.0],
        ["111", "211", "", "", "", "Brooms SB", "Brooms AG", "Campaign row", "", "", "",
         "", 9999, 99, 99, 99, 9, 9, 1.0],
    ]
    return _workbook_bytes(
        {
            "Portfolios": [["Portfolio ID", "Portfolio Name"]],
            "Brand Assets Data (Read-only)": assets,
            "SB Multi Ad Group Campaigns": performance,
        }
    )
