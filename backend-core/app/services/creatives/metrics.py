"""Metric accumulation and derived ratios shared by the performance and A/B views."""
from __future__ import annotations

from typing import Any

from .models import PerformanceRecord

SUMMED_METRICS = ("impressions", "clicks", "spend", "sales", "orders", "units")
RATE_METRICS = ("ctr", "conversion_rate", "cpc", "roas")


def derive_rates(
    impressions: float,
    clicks: float,
    spend: float,
    sales: float,
    orders: float,
) -> dict[str, float]:
    """
    Ratios recomputed from summed raw metrics.

    CTR and conversion rate are percentages; CPC is currency per click; ROAS
    is sales per unit of spend. A zero denominator yields 0.
    """
    return {
        "ctr": (clicks / impressions * 100) if impressions > 0 else 0.0,
        "conversion_rate": (orders / clicks * 100) if clicks > 0 else 0.0,
        "cpc": (spend / clicks) if clicks > 0 else 0.0,
        "roas": (sales / spend) if spend > 0 else 0.0,
    }


class MetricAccumulator:
    """Running sums for one group; ratios are filled in by calculate_rates()."""

    def __init__(self) -> None:
        self.impressions = 0
        self.clicks = 0
        self.spend = 0.0
        self.sales = 0.0
        self.orders = 0
        self.units = 0
        self.ctr = 0.0
        self.conversion_rate = 0.0
        self.cpc = 0.0
        self.roas = 0.0

    def add_record(self, record: PerformanceRecord) -> None:
        self.impressions += record.impressions
        self.clicks += record.clicks
        self.spend += record.spend
        self.sales += record.sales
        self.orders += record.orders
        self.units += record.units

    def add_metrics(self, other: "MetricAccumulator") -> None:
        for key in SUMMED_METRICS:
            setattr(self, key, getattr(self, key) + getattr(other, key))

    def calculate_rates(self) -> None:
        rates = derive_rates(self.impressions, self.clicks, self.spend, self.sales, self.orders)
        for key, value in rates.items():
            setattr(self, key, value)

    def metrics_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in (*SUMMED_METRICS, *RATE_METRICS)}
