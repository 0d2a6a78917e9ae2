import pytest

from app.services.creatives import (
    Asset,
    PerformanceRecord,
    aggregate_by_dimension,
    build_asset_index,
    build_performance_view,
    compute_grand_totals,
    sort_aggregated_rows,
)
from app.services.creatives.analytics import UNCATEGORIZED, UNLABELED
from app.services.creatives.metrics import derive_rates


def _record(video_ids, **kwargs):
    return PerformanceRecord(video_asset_ids=video_ids, **kwargs)


ASSETS = [
    Asset("V1", "Video", "hero_a.mp4", creative_name="Hero", category="Brand"),
    Asset("V2", "Video", "hero_b.mp4", creative_name="Hero", category="Brand"),
    Asset("V3", "Video", "demo.mp4", creative_name="Demo Cut", category="Demo"),
    Asset("V4", "Video", "raw.mp4"),
]


def test_derive_rates_and_zero_denominators():
    rates = derive_rates(impressions=1000, clicks=50, spend=25.0, sales=100.0, orders=5)
    assert rates["ctr"] == pytest.approx(5.0)
    assert rates["conversion_rate"] == pytest.approx(10.0)
    assert rates["cpc"] == pytest.approx(0.5)
    assert rates["roas"] == pytest.approx(4.0)

    assert derive_rates(0, 0, 0.0, 50.0, 3) == {"ctr": 0.0, "conversion_rate": 0.0, "cpc": 0.0, "roas": 0.0}


def test_records_with_shared_label_are_summed_and_ratios_recomputed():
    records = [
        _record("V1", impressions=1000, clicks=10, spend=10.0, sales=40.0, orders=2, units=2, roas=99.0),
        _record("V2", impressions=1000, clicks=30, spend=30.0, sales=30.0, orders=1, units=1, roas=99.0),
    ]

    rows = aggregate_by_dimension(records, build_asset_index(ASSETS), "creative_label")

    assert len(rows) == 1
    hero = rows[0]
    assert hero.name == "Hero"
    assert hero.category == "Brand"
    assert hero.ad_count == 2
    assert hero.impressions == 2000
    assert hero.clicks == 40
    assert hero.spend == pytest.approx(40.0)
    # Platform ROAS in the sheet is ignored; 70 / 40
    assert hero.roas == pytest.approx(1.75)
    assert hero.ctr == pytest.approx(2.0)
    assert hero.conversion_rate == pytest.approx(7.5)
    assert hero.cpc == pytest.approx(1.0)


def test_unknown_unlabeled_and_multi_id_records_fall_into_defaults():
    records = [
        _record("V4", spend=1.0),  # known, no labels
        _record("ZZZ", spend=2.0),  # not in the library
        _record("V1,V3", spend=3.0),  # composite key never matches
        _record("V3", spend=4.0),
    ]
    index = build_asset_index(ASSETS)

    by_label = aggregate_by_dimension(records, index, "creative_label")
    by_category = aggregate_by_dimension(records, index, "category")

    assert [(r.name, r.ad_count) for r in by_label] == [(UNLABELED, 3), ("Demo Cut", 1)]
    assert by_label[0].category == UNCATEGORIZED
    assert [(r.name, r.ad_count) for r in by_category] == [(UNCATEGORIZED, 3), ("Demo", 1)]
    assert by_label[0].spend == pytest.approx(6.0)


def test_ad_breakdown_dedupes_by_name_campaign_and_ad_group():
    records = [
        _record("V1", ad_name="Ad A", campaign_name="C1", ad_group_name="G1", spend=2.0, impressions=10),
        _record("V2", ad_name="Ad A", campaign_name="C1", ad_group_name="G1", spend=3.0, impressions=10),
        _record("V1", ad_name="Ad A", campaign_name="C2", ad_group_name="G1", spend=1.0),
        _record("V1", ad_name="Ad B", campaign_name="C1", ad_group_name="G1", spend=9.0, sales=18.0),
        _record("V1", ad_name="", campaign_name="C1", ad_group_name="G1", spend=100.0),
    ]

    row = aggregate_by_dimension(records, build_asset_index(ASSETS), "creative_label")[0]

    # Records without an ad name count toward the row, not the breakdown
    assert row.ad_count == 5
    assert row.spend == pytest.approx(115.0)
    assert [(ad.ad_name, ad.campaign_name, ad.spend) for ad in row.ads] == [
        ("Ad B", "C1", 9.0),
        ("Ad A", "C1", 5.0),
        ("Ad A", "C2", 1.0),
    ]
    assert row.ads[0].roas == pytest.approx(2.0)
    assert row.ads[1].impressions == 20


def test_sort_is_stable_and_rejects_unknown_fields():
    records = [
        _record("V4", spend=5.0),
        _record("V1", spend=5.0),
        _record("V3", spend=8.0, clicks=1),
    ]
    rows = aggregate_by_dimension(records, build_asset_index(ASSETS), "creative_label")

    assert [r.name for r in sort_aggregated_rows(rows, "spend")] == ["Demo Cut", UNLABELED, "Hero"]
    assert [r.name for r in sort_aggregated_rows(rows, "spend", ascending=True)] == [UNLABELED, "Hero", "Demo Cut"]
    assert [r.name for r in sort_aggregated_rows(rows, "clicks")] == ["Demo Cut", UNLABELED, "Hero"]

    with pytest.raises(ValueError):
        sort_aggregated_rows(rows, "acos")


def test_grand_totals_recompute_ratios_from_sums():
    records = [
        _record("V1", impressions=100, clicks=10, spend=10.0, sales=40.0, orders=1),
        _record("V3", impressions=900, clicks=90, spend=90.0, sales=90.0, orders=9),
    ]
    rows = aggregate_by_dimension(records, build_asset_index(ASSETS), "creative_label")

    totals = compute_grand_totals(rows)

    # Mean of group ROAS would be 2.5; the total is 130 / 100
    assert totals["roas"] == pytest.approx(1.3)
    assert totals["spend"] == pytest.approx(100.0)
    assert totals["ctr"] == pytest.approx(10.0)
    assert totals["conversion_rate"] == pytest.approx(10.0)
    assert totals["ad_count"] == 2


def test_empty_input_gives_no_rows_and_zero_totals():
    view = build_performance_view([], ASSETS)

    assert view["rows"] == []
    assert view["totals"]["spend"] == 0.0
    assert view["totals"]["roas"] == 0.0
    assert view["totals"]["ad_count"] == 0


def test_performance_view_shape_and_unknown_dimension():
    records = [_record("V1", ad_name="Ad", spend=2.0, sales=4.0), _record("V3", spend=1.0)]

    view = build_performance_view(records, ASSETS, "category", sort_field="roas")

    assert view["group_by"] == "category"
    assert [row["name"] for row in view["rows"]] == ["Brand", "Demo"]
    assert view["rows"][0]["ads"][0]["ad_name"] == "Ad"
    assert view["totals"]["sales"] == pytest.approx(4.0)

    with pytest.raises(ValueError):
        build_performance_view(records, ASSETS, "campaign")
