"""
Ads Report Scripts – dashboard section layouts.

Each section is a GAQL view, its dimension columns, and the shared metric
columns. Aggregated buckets become sheet rows; the trailing summary row holds
formulas over the written range so the sheet stays self-consistent if edited.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from aggregation import DEFAULT_FIELDS, MetricsBucket
from config import DateRange
from google_ads_client import build_query

SUM = "sum"
RATIO = "ratio"

COST_FILTER = "metrics.cost_micros > 0"


@dataclass(frozen=True)
class MetricColumn:
    header: str
    value: Callable[[MetricsBucket], Any]
    total: str = SUM
    # For RATIO totals: headers of the numerator and denominator columns
    ratio_of: Tuple[str, str] = ("", "")


METRIC_COLUMNS: Tuple[MetricColumn, ...] = (
    MetricColumn("Clicks", lambda b: b.clicks),
    MetricColumn("Impr.", lambda b: b.impressions),
    MetricColumn("CTR", lambda b: b.metrics.ctr, RATIO, ("Clicks", "Impr.")),
    MetricColumn("Avg. CPC", lambda b: b.metrics.avg_cpc, RATIO, ("Cost", "Clicks")),
    MetricColumn("Cost", lambda b: b.cost),
    MetricColumn("Total Conv. Value", lambda b: b.conversions_value),
    MetricColumn("Conv. Value / Cost", lambda b: b.metrics.roas, RATIO, ("Total Conv. Value", "Cost")),
    MetricColumn("Conv.", lambda b: b.conversions),
    MetricColumn("Cost / Conv.", lambda b: b.metrics.cost_per_conversion, RATIO, ("Cost", "Conv.")),
    MetricColumn("Conv. Rate", lambda b: b.metrics.conversion_rate, RATIO, ("Conv.", "Clicks")),
    MetricColumn("All Conv.", lambda b: b.all_conversions),
)


def column_letter(index: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA"""
    if index < 1:
        raise ValueError(f"column index must be >= 1, got {index}")
    letters = ""
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


@dataclass
class ReportTable:
    name: str
    headers: List[str]
    rows: List[List[Any]] = field(default_factory=list)
    summary: Optional[List[Any]] = None


def summary_row(dimension_count: int, data_rows: int) -> List[str]:
    """'Total' label, then SUM over the data range or a zero-guarded ratio of the summary cells."""
    first, last = 2, data_rows + 1
    summary_line = data_rows + 2
    letters = {}
    for i, col in enumerate(METRIC_COLUMNS):
        letters[col.header] = column_letter(dimension_count + i + 1)
    row: List[str] = ["Total"] + [""] * (dimension_count - 1)
    for col in METRIC_COLUMNS:
        letter = letters[col.header]
        if col.total == SUM:
            row.append(f"=SUM({letter}{first}:{letter}{last})")
        else:
            num, den = (letters[h] for h in col.ratio_of)
            row.append(f"=IFERROR({num}{summary_line}/{den}{summary_line}, 0)")
    return row


def build_table(name: str, dimension_headers: Sequence[str], buckets: Sequence[MetricsBucket]) -> ReportTable:
    headers = list(dimension_headers) + [c.header for c in METRIC_COLUMNS]
    rows = [list(b.key) + [c.value(b) for c in METRIC_COLUMNS] for b in buckets]
    summary = summary_row(len(dimension_headers), len(rows)) if rows else None
    return ReportTable(name=name, headers=headers, rows=rows, summary=summary)


@dataclass(frozen=True)
class SectionSpec:
    """One dashboard tab."""

    sheet_name: str
    resource: str
    dimension_headers: Tuple[str, ...]
    select: Tuple[str, ...]
    where: Tuple[str, ...] = ()
    order_by: Optional[str] = None
    # Record fields forming the key when they differ from select (e.g. a resolved country name)
    key_fields: Tuple[str, ...] = ()
    sort_by_cost: bool = True
    # Optional sections degrade to empty_message on query failure instead of aborting
    optional: bool = False
    empty_message: str = ""
    # Entity label in the email summary ("Active Campaigns"); blank for none
    summary_label: str = ""

    def query(self, date_range: DateRange) -> str:
        return build_query(
            self.resource,
            list(self.select) + list(DEFAULT_FIELDS.values()),
            where=[date_range.gaql_predicate()] + list(self.where),
            order_by=self.order_by,
        )

    @property
    def headers(self) -> List[str]:
        return list(self.dimension_headers) + [c.header for c in METRIC_COLUMNS]

    @property
    def key_field_names(self) -> Tuple[str, ...]:
        return self.key_fields or self.select


COUNTRY_NAME_FIELD = "country_name"

ACCOUNT_DAILY = SectionSpec(
    sheet_name="Account Daily",
    resource="customer",
    dimension_headers=("Date",),
    select=("segments.date",),
    order_by="segments.date DESC",
    sort_by_cost=False,
)

TOP_CAMPAIGNS = SectionSpec(
    sheet_name="Top Campaigns",
    resource="campaign",
    dimension_headers=("Campaign",),
    select=("campaign.name",),
    where=("campaign.status != 'REMOVED'", COST_FILTER),
    order_by="metrics.cost_micros DESC",
    summary_label="Active Campaigns",
)

TOP_AD_GROUPS = SectionSpec(
    sheet_name="Top Ad Groups",
    resource="ad_group",
    dimension_headers=("Campaign", "Ad Group"),
    select=("campaign.name", "ad_group.name"),
    where=("ad_group.status != 'REMOVED'", COST_FILTER),
    order_by="metrics.cost_micros DESC",
    summary_label="Active Ad Groups",
)

TOP_SEARCH_QUERIES = SectionSpec(
    sheet_name="Top Search Queries",
    resource="search_term_view",
    dimension_headers=("Search Query", "Campaign", "Ad Group"),
    select=("search_term_view.search_term", "campaign.name", "ad_group.name"),
    where=("ad_group.status != 'REMOVED'", COST_FILTER),
    order_by="metrics.cost_micros DESC",
    summary_label="Active Search Queries",
)

TOP_LANDING_PAGES = SectionSpec(
    sheet_name="Top Landing Pages",
    resource="landing_page_view",
    dimension_headers=("Landing Page",),
    select=("landing_page_view.unexpanded_final_url",),
    where=(COST_FILTER,),
    order_by="metrics.cost_micros DESC",
    optional=True,
    empty_message="No landing page data with spend found for the selected date range.",
    summary_label="Active Landing Pages",
)

TOP_COUNTRIES = SectionSpec(
    sheet_name="Top Countries",
    resource="geographic_view",
    dimension_headers=("Country",),
    select=("geographic_view.country_criterion_id",),
    where=("geographic_view.location_type = 'LOCATION_OF_PRESENCE'", COST_FILTER),
    key_fields=(COUNTRY_NAME_FIELD,),
    optional=True,
    empty_message="No country-level data available for the selected date range.",
    summary_label="Active Countries",
)

DASHBOARD_SECTIONS: Tuple[SectionSpec, ...] = (
    ACCOUNT_DAILY,
    TOP_CAMPAIGNS,
    TOP_AD_GROUPS,
    TOP_SEARCH_QUERIES,
    TOP_LANDING_PAGES,
    TOP_COUNTRIES,
)
