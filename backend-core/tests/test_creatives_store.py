import re
from pathlib import Path
from unittest.mock import MagicMock

from app.services.creatives import Asset, LabelStore, PerformanceRecord
from app.services.creatives.store import (
    ASSETS_TABLE,
    INSERT_BATCH_SIZE,
    RECORDS_TABLE,
    _asset_to_row,
    _record_to_row,
)

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "supabase" / "creatives_schema.sql"


def _client_with_tables():
    tables = {ASSETS_TABLE: MagicMock(), RECORDS_TABLE: MagicMock()}
    client = MagicMock()
    client.table.side_effect = lambda name: tables[name]
    return client, tables


def test_save_replaces_user_rows_and_batches_records():
    client, tables = _client_with_tables()
    store = LabelStore(client=client)
    assets = [Asset("V1", "Video", "a.mp4", creative_name="Hero"), Asset("V2", "Video")]
    records = [PerformanceRecord("V1", spend=float(i)) for i in range(INSERT_BATCH_SIZE * 2 + 1)]

    result = store.save("user-1", assets, records)

    assert result == {"success": True}
    for table in tables.values():
        table.delete.return_value.eq.assert_called_with("user_id", "user-1")

    asset_rows = tables[ASSETS_TABLE].insert.call_args[0][0]
    assert [row["asset_id"] for row in asset_rows] == ["V1", "V2"]
    assert asset_rows[0]["creative_name"] == "Hero"
    # Empty labels are stored as NULL
    assert asset_rows[1]["creative_name"] is None
    assert all(row["user_id"] == "user-1" for row in asset_rows)

    batches = [c[0][0] for c in tables[RECORDS_TABLE].insert.call_args_list]
    assert [len(batch) for batch in batches] == [INSERT_BATCH_SIZE, INSERT_BATCH_SIZE, 1]
    assert batches[2][0]["spend"] == float(INSERT_BATCH_SIZE * 2)


def test_save_reports_failure_instead_of_raising():
    client, tables = _client_with_tables()
    tables[RECORDS_TABLE].insert.return_value.execute.side_effect = RuntimeError("db down")
    store = LabelStore(client=client)

    result = store.save("user-1", [], [PerformanceRecord("V1")])

    assert result == {"success": False, "error": "db down"}


def test_save_without_user_is_rejected():
    client = MagicMock()
    result = LabelStore(client=client).save("", [], [])

    assert result == {"success": False, "error": "Not authenticated"}
    client.table.assert_not_called()


def test_load_maps_rows_back_to_models():
    client, tables = _client_with_tables()
    tables[ASSETS_TABLE].select.return_value.eq.return_value.order.return_value.range.return_value.execute.return_value.data = [
        {
            "user_id": "user-1",
            "asset_id": "V1",
            "asset_type": "Video",
            "asset_name": "hero.mp4",
            "asset_url": None,
            "creative_name": "Hero",
            "category": None,
            "thumbnail_url": None,
            "is_synthesized": False,
        }
    ]
    tables[RECORDS_TABLE].select.return_value.eq.return_value.order.return_value.range.return_value.execute.return_value.data = [
        {"user_id": "user-1", "video_asset_ids": "V1", "campaign_name": "C1", "impressions": "12", "spend": "3.5", "ctr": None}
    ]

    loaded = LabelStore(client=client).load("user-1")

    assert "error" not in loaded
    assert loaded["assets"] == [Asset("V1", "Video", "hero.mp4", creative_name="Hero")]
    record = loaded["performance_records"][0]
    assert record.video_asset_ids == "V1"
    assert record.campaign_name == "C1"
    assert record.impressions == 12
    assert record.spend == 3.5
    assert record.ctr == 0.0


class CappedTable:
    """Query builder stand-in that serves at most 1000 rows per request, like PostgREST."""

    def __init__(self, rows):
        self.rows = rows
        self.requests = 0
        self._window = (0, None)

    def select(self, *_):
        self._window = (0, None)
        return self

    def eq(self, *_):
        return self

    def order(self, *_):
        return self

    def range(self, start, end):
        self._window = (start, end + 1)
        return self

    def execute(self):
        self.requests += 1
        start, stop = self._window
        page = self.rows[start:stop][:1000]
        return MagicMock(data=page)


def test_load_pages_past_the_response_row_cap():
    record_rows = [{"video_asset_ids": f"V{i % 3}", "spend": "1.0", "sales": "2.0"} for i in range(2500)]
    tables = {
        ASSETS_TABLE: CappedTable([{"asset_id": "V0", "asset_type": "Video"}]),
        RECORDS_TABLE: CappedTable(record_rows),
    }
    client = MagicMock()
    client.table.side_effect = lambda name: tables[name]

    loaded = LabelStore(client=client).load("user-1")

    assert len(loaded["performance_records"]) == 2500
    assert sum(r.spend for r in loaded["performance_records"]) == 2500.0
    assert tables[RECORDS_TABLE].requests == 3
    assert len(loaded["assets"]) == 1


def test_load_failure_returns_error():
    client = MagicMock()
    client.table.side_effect = RuntimeError("timeout")

    loaded = LabelStore(client=client).load("user-1")

    assert loaded == {"assets": [], "performance_records": [], "error": "timeout"}


def test_update_asset_label_sends_only_given_fields():
    client, tables = _client_with_tables()
    store = LabelStore(client=client)

    assert store.update_asset_label("user-1", "V1", category="Demo") == {"success": True}
    tables[ASSETS_TABLE].update.assert_called_once_with({"category": "Demo"})

    assert store.update_asset_label("user-1", "V1", creative_name="") == {"success": True}
    tables[ASSETS_TABLE].update.assert_called_with({"creative_name": None})

    tables[ASSETS_TABLE].update.reset_mock()
    assert store.update_asset_label("user-1", "V1") == {"success": True}
    tables[ASSETS_TABLE].update.assert_not_called()


def test_upload_thumbnail_returns_public_url():
    client = MagicMock()
    bucket = client.storage.from_.return_value
    bucket.get_public_url.return_value = "https://cdn/thumbnails/user-1/V1.jpg"

    url = LabelStore(client=client).upload_thumbnail("user-1", "V1", b"\xff\xd8jpeg")

    assert url == "https://cdn/thumbnails/user-1/V1.jpg"
    client.storage.from_.assert_called_once_with("thumbnails")
    args = bucket.upload.call_args[0]
    assert args[0] == "user-1/V1.jpg"
    assert args[1] == b"\xff\xd8jpeg"


def test_upload_thumbnail_failure_returns_none():
    client = MagicMock()
    client.storage.from_.return_value.upload.side_effect = RuntimeError("denied")

    assert LabelStore(client=client).upload_thumbnail("user-1", "V1", b"img") is None


def _schema_columns(table):
    sql = SCHEMA_PATH.read_text()
    body = re.search(rf"CREATE TABLE IF NOT EXISTS {table} \((.*?)\n\);", sql, re.S).group(1)
    columns = {line.split()[0] for line in body.strip().splitlines() if line.strip() and not line.strip().startswith("UNIQUE")}
    columns |= set(re.findall(rf"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS (\w+)", sql))
    return columns


def test_saved_rows_only_use_columns_in_the_schema():
    asset_row = _asset_to_row("user-1", Asset("V1", "Video", is_synthesized=True, thumbnail_url="https://t/v1.jpg"))
    record_row = _record_to_row("user-1", PerformanceRecord("V1"))

    assert set(asset_row) <= _schema_columns(ASSETS_TABLE)
    assert set(record_row) <= _schema_columns(RECORDS_TABLE)
    assert {"is_synthesized", "thumbnail_url"} <= _schema_columns(ASSETS_TABLE)
