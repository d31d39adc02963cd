"""Usage insights derived from a fetch snapshot.

Pure functions over activity records and key usage, used by anything that
presents the monitor's data (summaries, charts, tables):
- time-window filtering of activity by local calendar day
- per-model usage summaries
- model spend concentration (top N plus "Others")
- per-key limit utilization
- per-day, per-model series for charts
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from .config import CONCENTRATION_TOP_N, HIGH_UTILIZATION_RATIO, OTHERS_LABEL
from .types import ActivityRecord, KeyUsageRecord

ALL_MODELS = "All Models"


class ActivityWindow(str, Enum):
    """Lookback windows, counted in local calendar days including today."""
    TODAY = "Today"
    WEEK = "1 Week"
    TWO_WEEKS = "2 Weeks"
    THREE_WEEKS = "3 Weeks"
    MONTH = "1 Month"

    @property
    def days(self) -> int:
        return _WINDOW_DAYS[self]


_WINDOW_DAYS = {
    ActivityWindow.TODAY: 1,
    ActivityWindow.WEEK: 7,
    ActivityWindow.TWO_WEEKS: 14,
    ActivityWindow.THREE_WEEKS: 21,
    ActivityWindow.MONTH: 30,
}


class ActivityMetric(str, Enum):
    SPEND = "spend"
    REQUESTS = "requests"
    TOKENS = "tokens"


class ModelSortMetric(str, Enum):
    PROVIDER = "provider"
    MODEL = "model"
    SPEND = "spend"
    REQUESTS = "requests"
    TOKENS = "tokens"


class KeySortMetric(str, Enum):
    KEY = "key"
    USED = "used"
    UTILIZATION = "utilization"


@dataclass
class ActivityTotals:
    """Summed activity values."""
    spend: float = 0.0
    requests: int = 0
    tokens: int = 0

    def add(self, record: ActivityRecord) -> None:
        self.spend += record.spend
        self.requests += record.request_count
        self.tokens += record.total_tokens

    def value(self, metric: ActivityMetric) -> float:
        if metric == ActivityMetric.SPEND:
            return self.spend
        if metric == ActivityMetric.REQUESTS:
            return float(self.requests)
        return float(self.tokens)


@dataclass
class ModelUsageSummary:
    """Usage totals for one model."""
    provider: str
    model: str
    raw_model: str
    spend: float = 0.0
    requests: int = 0
    tokens: int = 0


@dataclass(frozen=True)
class ConcentrationSlice:
    label: str
    spend: float


@dataclass(frozen=True)
class KeyUtilization:
    """How much of a key's spending limit is used."""
    key_name: str
    used: float
    limit: float
    ratio: float  # 0.0 to 1.0

    @property
    def is_high(self) -> bool:
        return self.ratio > HIGH_UTILIZATION_RATIO


@dataclass
class DailySeries:
    """Per-day, per-model activity for a window, zero-filled."""
    days: list[date]
    models: list[str]
    values: dict[date, dict[str, ActivityTotals]] = field(default_factory=dict)
    total_spend: float = 0.0
    total_requests: int = 0
    total_tokens: int = 0

    def points(self, metric: ActivityMetric, non_zero: bool = False) -> list[tuple[date, str, float]]:
        """(day, model, value) for every day slot and displayed model."""
        points = []
        for day in self.days:
            by_model = self.values.get(day, {})
            for model in self.models:
                totals = by_model.get(model) or ActivityTotals()
                value = totals.value(metric)
                if non_zero and value <= 0:
                    continue
                points.append((day, model, value))
        return points


# =============================================================================
# ACTIVITY FILTERING
# =============================================================================


def local_day(timestamp: datetime) -> date:
    """Calendar day of a timestamp in the local timezone."""
    return timestamp.astimezone().date()


def window_days(window: ActivityWindow, today: Optional[date] = None) -> list[date]:
    """Day slots for a window, oldest first, ending today."""
    today = today or date.today()
    start = today - timedelta(days=window.days - 1)
    return [start + timedelta(days=offset) for offset in range(window.days)]


def available_models(records: Iterable[ActivityRecord]) -> list[str]:
    return sorted({record.model for record in records})


def filter_activity(
    records: Iterable[ActivityRecord],
    window: ActivityWindow,
    model: Optional[str] = None,
    today: Optional[date] = None
) -> list[ActivityRecord]:
    """Records whose day falls in the window (and match the model, if given).

    Records with an unparseable timestamp are always excluded.
    """
    days = window_days(window, today)
    start, end = days[0], days[-1]
    match_all = model is None or model == ALL_MODELS

    filtered = []
    for record in records:
        if record.timestamp is None:
            continue
        day = local_day(record.timestamp)
        if day < start or day > end:
            continue
        if not match_all and record.model != model:
            continue
        filtered.append(record)
    return filtered


# =============================================================================
# MODEL SUMMARIES
# =============================================================================


def split_model(raw_model: str) -> tuple[str, str]:
    """Split "provider/model"; models without a provider get "unknown"."""
    provider, sep, model = raw_model.partition("/")
    if not sep or not provider or not model:
        return "unknown", raw_model
    return provider, model


def summarize_models(
    records: Iterable[ActivityRecord],
    sort_by: ModelSortMetric = ModelSortMetric.SPEND,
    ascending: bool = False,
    limit: Optional[int] = None
) -> list[ModelUsageSummary]:
    """Group records by model and sum spend, requests and tokens."""
    grouped: dict[str, ModelUsageSummary] = {}

    for record in records:
        summary = grouped.get(record.model)
        if summary is None:
            provider, model = split_model(record.model)
            summary = ModelUsageSummary(provider=provider, model=model, raw_model=record.model)
            grouped[record.model] = summary
        summary.spend += record.spend
        summary.requests += record.request_count
        summary.tokens += record.total_tokens

    sort_keys = {
        ModelSortMetric.PROVIDER: lambda s: s.provider.casefold(),
        ModelSortMetric.MODEL: lambda s: s.model.casefold(),
        ModelSortMetric.SPEND: lambda s: s.spend,
        ModelSortMetric.REQUESTS: lambda s: s.requests,
        ModelSortMetric.TOKENS: lambda s: s.tokens,
    }
    summaries = sorted(grouped.values(), key=sort_keys[sort_by], reverse=not ascending)
    return summaries[:limit] if limit is not None else summaries


def model_concentration(
    records: Iterable[ActivityRecord],
    top_n: int = CONCENTRATION_TOP_N
) -> list[ConcentrationSlice]:
    """Top models by spend, with the rest folded into "Others"."""
    spend_by_model: dict[str, float] = defaultdict(float)
    for record in records:
        spend_by_model[record.model] += record.spend

    ranked = sorted(
        (ConcentrationSlice(label=model, spend=spend) for model, spend in spend_by_model.items()),
        key=lambda s: s.spend,
        reverse=True
    )

    top = ranked[:top_n]
    others = sum(s.spend for s in ranked[top_n:])
    if others > 0:
        top.append(ConcentrationSlice(label=OTHERS_LABEL, spend=others))
    return top


def top_share_ratio(slices: Iterable[ConcentrationSlice]) -> float:
    """Share of spend held by the named (non-"Others") slices."""
    slices = list(slices)
    total = sum(s.spend for s in slices)
    if total <= 0:
        return 0.0
    named = sum(s.spend for s in slices if s.label != OTHERS_LABEL)
    return named / total


# =============================================================================
# KEY UTILIZATION
# =============================================================================


def key_utilization(
    keys: Iterable[KeyUsageRecord],
    sort_by: KeySortMetric = KeySortMetric.UTILIZATION,
    ascending: bool = False
) -> list[KeyUtilization]:
    """Limit utilization for keys that have a positive spending limit."""
    rows = []
    for key in keys:
        if key.limit is None or key.limit <= 0:
            continue
        remaining = key.limit_remaining if key.limit_remaining is not None else key.limit
        used = max(0.0, key.limit - remaining)
        ratio = max(0.0, min(1.0, used / key.limit))
        rows.append(KeyUtilization(key_name=key.display_name, used=used, limit=key.limit, ratio=ratio))

    sort_keys = {
        KeySortMetric.KEY: lambda r: r.key_name.casefold(),
        KeySortMetric.USED: lambda r: r.used,
        KeySortMetric.UTILIZATION: lambda r: r.ratio,
    }
    return sorted(rows, key=sort_keys[sort_by], reverse=not ascending)


# =============================================================================
# CHART SERIES
# =============================================================================


def build_daily_series(
    records: Iterable[ActivityRecord],
    window: ActivityWindow,
    model: Optional[str] = None,
    today: Optional[date] = None
) -> DailySeries:
    """Aggregate activity per local day and model for a window."""
    records = list(records)
    days = window_days(window, today)
    models = available_models(records)
    if model is not None and model != ALL_MODELS:
        models = [model] if model in models else []

    series = DailySeries(days=days, models=models)
    for record in filter_activity(records, window, model, today):
        day = local_day(record.timestamp)
        by_model = series.values.setdefault(day, {})
        by_model.setdefault(record.model, ActivityTotals()).add(record)
        series.total_spend += record.spend
        series.total_requests += record.request_count
        series.total_tokens += record.total_tokens

    return series
