"""
Ads Report Scripts – metrics aggregation.

One generic pass over report rows: sum raw counters per grouping key and into a
grand total, then derive ratios from the summed counters. Every dashboard section
and the country email go through aggregate(); only the key function and the
selected fields differ.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

MICROS_PER_UNIT = 1_000_000
UNKNOWN_LABEL = "Unknown"

Key = Tuple[str, ...]
KeyFunc = Callable[[Dict[str, Any]], Key]

# Counter name -> GAQL field name
DEFAULT_FIELDS: Dict[str, str] = {
    "clicks": "metrics.clicks",
    "impressions": "metrics.impressions",
    "cost_micros": "metrics.cost_micros",
    "conversions": "metrics.conversions",
    "conversions_value": "metrics.conversions_value",
    "all_conversions": "metrics.all_conversions",
}

_INT_COUNTERS = frozenset({"clicks", "impressions", "cost_micros"})


def _clean_numeric(val: Any) -> Optional[str]:
    if val is None or isinstance(val, bool):
        return None
    s = str(val).replace(",", "").strip()
    if not s or s == "--":
        return None
    return s


def parse_int(val: Any) -> int:
    """Integer from an API value (int, float, '1,234', '12.0'); anything malformed is 0."""
    if isinstance(val, int) and not isinstance(val, bool):
        return val
    s = _clean_numeric(val)
    if s is None:
        return 0
    try:
        return int(s)
    except ValueError:
        pass
    try:
        f = float(s)
    except ValueError:
        return 0
    if f != f or f in (float("inf"), float("-inf")):
        return 0
    return int(f)


def parse_float(val: Any) -> float:
    """Float from an API value; anything malformed (or NaN/inf) is 0.0."""
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        f = float(val)
    else:
        s = _clean_numeric(val)
        if s is None:
            return 0.0
        try:
            f = float(s)
        except ValueError:
            return 0.0
    if f != f or f in (float("inf"), float("-inf")):
        return 0.0
    return f


def micros_to_currency(micros: Any) -> float:
    """2500000 -> 2.5"""
    return parse_int(micros) / MICROS_PER_UNIT


def _safe_div(num: float, den: float) -> float:
    return num / den if den > 0 else 0.0


@dataclass(frozen=True)
class DerivedMetrics:
    ctr: float
    avg_cpc: float
    roas: float
    conversion_rate: float
    cost_per_conversion: float


@dataclass
class MetricsBucket:
    """Running counter sums for one grouping key (or the grand total, key ())."""

    key: Key = ()
    clicks: int = 0
    impressions: int = 0
    cost_micros: int = 0
    conversions: float = 0.0
    conversions_value: float = 0.0
    all_conversions: float = 0.0

    @property
    def cost(self) -> float:
        return self.cost_micros / MICROS_PER_UNIT

    @property
    def label(self) -> str:
        return " / ".join(self.key)

    def add(self, record: Dict[str, Any], fields: Dict[str, str]) -> None:
        for counter, field_name in fields.items():
            raw = record.get(field_name)
            if counter in _INT_COUNTERS:
                setattr(self, counter, getattr(self, counter) + parse_int(raw))
            else:
                setattr(self, counter, getattr(self, counter) + parse_float(raw))

    @property
    def metrics(self) -> DerivedMetrics:
        return derived_metrics(self)


def derived_metrics(bucket: MetricsBucket) -> DerivedMetrics:
    """Ratios recomputed from summed counters; zero denominators give 0."""
    cost = bucket.cost
    return DerivedMetrics(
        ctr=_safe_div(bucket.clicks, bucket.impressions),
        avg_cpc=_safe_div(cost, bucket.clicks),
        roas=_safe_div(bucket.conversions_value, cost),
        conversion_rate=_safe_div(bucket.conversions, bucket.clicks),
        cost_per_conversion=_safe_div(cost, bucket.conversions),
    )


@dataclass
class AggregateResult:
    buckets: Dict[Key, MetricsBucket] = field(default_factory=dict)
    total: MetricsBucket = field(default_factory=MetricsBucket)

    def __len__(self) -> int:
        return len(self.buckets)

    def ordered(self, sort_by_cost: bool = True) -> List[MetricsBucket]:
        """Buckets by cost descending, ties in first-appearance order; or source order when sort_by_cost is False."""
        items = list(self.buckets.values())
        if sort_by_cost:
            items.sort(key=lambda b: b.cost_micros, reverse=True)
        return items


def _label(val: Any) -> str:
    if val is None:
        return UNKNOWN_LABEL
    s = str(val).strip()
    return s or UNKNOWN_LABEL


def key_from(*field_names: str) -> KeyFunc:
    """Key function reading the given record fields verbatim; blank/missing values become 'Unknown'."""

    def _key(record: Dict[str, Any]) -> Key:
        return tuple(_label(record.get(f)) for f in field_names)

    return _key


def aggregate(
    records: Iterable[Dict[str, Any]],
    key: KeyFunc,
    fields: Optional[Dict[str, str]] = None,
) -> AggregateResult:
    """Sum the selected counters of records per key and into a grand total (single pass)."""
    fields = DEFAULT_FIELDS if fields is None else fields
    result = AggregateResult()
    n = 0
    for record in records:
        n += 1
        k = key(record)
        bucket = result.buckets.get(k)
        if bucket is None:
            bucket = result.buckets[k] = MetricsBucket(key=k)
        bucket.add(record, fields)
        result.total.add(record, fields)
    logger.debug("aggregate: %s records into %s buckets", n, len(result.buckets))
    return result
