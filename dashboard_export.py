"""
Ads Report Scripts – performance dashboard export.

Writes six tabs (Account Daily, Top Campaigns, Top Ad Groups, Top Search Queries,
Top Landing Pages, Top Countries) for the configured date range, then optionally
emails a current vs prior period summary.

  python dashboard_export.py [--project NAME] [--date-range LAST_7_DAYS | --start-date YYYY-MM-DD --end-date YYYY-MM-DD] [--no-email]
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Optional

from aggregation import AggregateResult, MetricsBucket, aggregate, key_from
from config import DateRange, ReportConfig, account_now, load_report_config
from google_ads_client import (
    GoogleAdsReportSource,
    ReportQueryError,
    ReportSource,
    country_label,
    fetch_account_info,
    fetch_country_names,
)
from mail_sink import NotificationSink, SmtpNotificationSink
from notifications import SummaryMetric, render_dashboard_email, send_best_effort
from reports import (
    ACCOUNT_DAILY,
    COUNTRY_NAME_FIELD,
    DASHBOARD_SECTIONS,
    TOP_COUNTRIES,
    SectionSpec,
    build_table,
)
from sheets_sink import SheetsTabularSink, SinkConfigError, TabularSink

logger = logging.getLogger(__name__)

COST_ONLY = {"cost_micros": "metrics.cost_micros"}


@dataclass
class SectionResult:
    spec: SectionSpec
    rows: int = 0
    total: MetricsBucket = field(default_factory=MetricsBucket)
    failed: bool = False


@dataclass
class DashboardResult:
    sections: Dict[str, SectionResult] = field(default_factory=dict)
    prior_cost: float = 0.0
    prior_counts: Dict[str, int] = field(default_factory=dict)
    email_sent: bool = False

    @property
    def total_cost(self) -> float:
        daily = self.sections.get(ACCOUNT_DAILY.sheet_name)
        return daily.total.cost if daily else 0.0


def _with_country_names(records: Iterable[Dict[str, Any]], names: Dict[str, str]) -> Iterator[Dict[str, Any]]:
    for r in records:
        yield {**r, COUNTRY_NAME_FIELD: country_label(r.get("geographic_view.country_criterion_id"), names)}


def _period(start: date, end: date) -> DateRange:
    return DateRange(start=start, end=end)


def fetch_prior_period_cost(source: ReportSource, prior: DateRange) -> float:
    query = f"SELECT metrics.cost_micros FROM customer WHERE {prior.gaql_predicate()}"
    try:
        return aggregate(source.query(query), key_from(), COST_ONLY).total.cost
    except ReportQueryError as e:
        logger.warning("Could not retrieve prior period cost: %s", e)
        return 0.0


def _section_records(
    source: ReportSource,
    spec: SectionSpec,
    date_range: DateRange,
    country_names: Optional[Dict[str, str]] = None,
) -> Iterable[Dict[str, Any]]:
    records: Iterable[Dict[str, Any]] = source.query(spec.query(date_range))
    if spec.key_field_names == (COUNTRY_NAME_FIELD,):
        records = _with_country_names(records, country_names or {})
    return records


def count_prior_entities(
    source: ReportSource,
    spec: SectionSpec,
    prior: DateRange,
    country_names: Optional[Dict[str, str]] = None,
) -> int:
    """Distinct section keys with spend in the prior period (same view, filters and key as the section)."""
    try:
        return len(aggregate(_section_records(source, spec, prior, country_names), key_from(*spec.key_field_names), {}))
    except ReportQueryError as e:
        logger.warning("Could not retrieve prior count for %s: %s", spec.resource, e)
        return 0


def export_section(
    source: ReportSource,
    sink: TabularSink,
    spec: SectionSpec,
    date_range: DateRange,
    country_names: Optional[Dict[str, str]] = None,
) -> SectionResult:
    """Query, aggregate and write one tab. Optional sections write a note instead of raising on query failure."""
    headers = spec.headers
    records = _section_records(source, spec, date_range, country_names)
    try:
        result: AggregateResult = aggregate(records, key_from(*spec.key_field_names))
    except ReportQueryError as e:
        if not spec.optional:
            raise
        logger.warning("Could not retrieve %s data: %s", spec.sheet_name, e)
        sink.write_report(spec.sheet_name, headers, [[f"Could not retrieve {spec.sheet_name.lower()} data. See logs for details."]])
        return SectionResult(spec=spec, failed=True)

    table = build_table(spec.sheet_name, spec.dimension_headers, result.ordered(spec.sort_by_cost))
    if table.rows:
        sink.write_report(table.name, table.headers, table.rows, table.summary)
    elif spec.empty_message:
        sink.write_report(table.name, table.headers, [[spec.empty_message]])
    else:
        sink.write_report(table.name, table.headers, [])
    logger.info("%s: %s rows, cost %.2f", spec.sheet_name, len(table.rows), result.total.cost)
    return SectionResult(spec=spec, rows=len(table.rows), total=result.total)


def run_dashboard_export(
    config: ReportConfig,
    source: ReportSource,
    sink: TabularSink,
    notifier: Optional[NotificationSink] = None,
    today: Optional[date] = None,
    spreadsheet_url: str = "",
) -> DashboardResult:
    account = fetch_account_info(source)
    now = account_now(account["time_zone"])
    today = today or now.date()
    prior = _period(*config.date_range.prior_period(today))
    result = DashboardResult()

    country_names = fetch_country_names(source) if TOP_COUNTRIES in DASHBOARD_SECTIONS else {}

    result.prior_cost = fetch_prior_period_cost(source, prior)
    for spec in DASHBOARD_SECTIONS:
        if spec.summary_label:
            result.prior_counts[spec.summary_label] = count_prior_entities(source, spec, prior, country_names)

    for spec in DASHBOARD_SECTIONS:
        result.sections[spec.sheet_name] = export_section(source, sink, spec, config.date_range, country_names)

    if config.send_email and notifier is not None:
        metrics: List[SummaryMetric] = [SummaryMetric("Total Cost", result.total_cost, result.prior_cost, is_currency=True)]
        for section in result.sections.values():
            label = section.spec.summary_label
            if label:
                metrics.append(SummaryMetric(label, section.rows, result.prior_counts.get(label, 0)))
        body_html, body_text = render_dashboard_email(
            account_name=account["name"],
            account_id=account["customer_id"],
            spreadsheet_url=spreadsheet_url or getattr(sink, "url", ""),
            metrics=metrics,
            period_label=config.date_range.label(),
            generated_at=now.strftime("%Y-%m-%d %H:%M:%S %Z"),
        )
        subject = f"[{account['name']}] Google Ads Performance Dashboard Updated"
        result.email_sent = send_best_effort(notifier, config.email_recipients, subject, body_html, body_text)

    logger.info("Export completed: %s sections, total cost %.2f (prior %.2f)", len(result.sections), result.total_cost, result.prior_cost)
    return result


def date_range_from_args(preset: Optional[str], start_date: Optional[str], end_date: Optional[str]) -> Optional[DateRange]:
    """CLI range: explicit --start-date/--end-date (both required), else a preset, else None for the .env default."""
    if start_date or end_date:
        if not (start_date and end_date):
            raise ValueError("--start-date and --end-date must be given together")
        return DateRange(start=date.fromisoformat(start_date), end=date.fromisoformat(end_date))
    if preset:
        return DateRange.parse(preset)
    return None


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Export Google Ads performance dashboard to Google Sheets")
    parser.add_argument("--project", type=str, default=None, help="Project name (default: first of ADS_PROJECTS)")
    parser.add_argument("--date-range", type=str, default=None, help="GAQL preset, e.g. LAST_7_DAYS (default: REPORT_DATE_RANGE)")
    parser.add_argument("--start-date", type=str, default=None, help="Explicit range start YYYY-MM-DD (use with --end-date)")
    parser.add_argument("--end-date", type=str, default=None, help="Explicit range end YYYY-MM-DD")
    parser.add_argument("--no-email", action="store_true", help="Do not send the summary email")
    args = parser.parse_args()

    try:
        date_range = date_range_from_args(args.date_range, args.start_date, args.end_date)
        config = load_report_config(args.project, date_range=date_range, send_email=False if args.no_email else None)
        sink = SheetsTabularSink(config.spreadsheet_id, config.credentials_path)
    except (ValueError, SinkConfigError) as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    try:
        run_dashboard_export(config, GoogleAdsReportSource(config.customer_id), sink, SmtpNotificationSink())
    except Exception as e:
        logger.exception("Dashboard export failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
