"""
Ads Report Scripts – daily country performance email.

Previous day's spend by country of user presence, with a TOTAL row, emailed as
HTML + plain text.

  python country_email.py [--project NAME] [--date YYYY-MM-DD] [--dry-run]
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from aggregation import AggregateResult, MetricsBucket, aggregate, key_from
from config import DateRange, ReportConfig, account_now, load_report_config
from google_ads_client import (
    GoogleAdsReportSource,
    ReportSource,
    build_query,
    country_label,
    fetch_account_info,
    fetch_country_names,
)
from mail_sink import NotificationSink, SmtpNotificationSink
from notifications import render_country_email, send_best_effort
from reports import COUNTRY_NAME_FIELD

logger = logging.getLogger(__name__)

EMAIL_SUBJECT = "Google Ads - Country Spend Report (Previous Day)"

COUNTRY_FIELDS = {
    "clicks": "metrics.clicks",
    "impressions": "metrics.impressions",
    "cost_micros": "metrics.cost_micros",
    "conversions": "metrics.conversions",
}


@dataclass
class CountryReport:
    report_date: date
    countries: List[MetricsBucket] = field(default_factory=list)
    total: MetricsBucket = field(default_factory=MetricsBucket)
    email_sent: bool = False


def country_query(report_date: date) -> str:
    return build_query(
        "geographic_view",
        ["geographic_view.country_criterion_id"] + list(COUNTRY_FIELDS.values()),
        where=[
            DateRange(start=report_date, end=report_date).gaql_predicate(),
            "geographic_view.location_type = 'LOCATION_OF_PRESENCE'",
            "metrics.impressions > 0",
            "metrics.cost_micros > 0",
        ],
    )


def get_country_data(source: ReportSource, report_date: date) -> AggregateResult:
    """Per-country totals for one day. Name lookup failures fall back to 'Unknown (<id>)'; report failures raise."""
    names = fetch_country_names(source)
    records = (
        {**r, COUNTRY_NAME_FIELD: country_label(r.get("geographic_view.country_criterion_id"), names)}
        for r in source.query(country_query(report_date))
    )
    return aggregate(records, key_from(COUNTRY_NAME_FIELD), COUNTRY_FIELDS)


def run_country_email(
    config: ReportConfig,
    source: ReportSource,
    notifier: Optional[NotificationSink],
    report_date: Optional[date] = None,
) -> CountryReport:
    if report_date is None:
        account = fetch_account_info(source)
        report_date = account_now(account["time_zone"]).date() - timedelta(days=1)
    result = get_country_data(source, report_date)
    report = CountryReport(report_date=report_date, countries=result.ordered(), total=result.total)
    logger.info("Country report %s: %s countries, spend %.2f", report_date.isoformat(), len(report.countries), report.total.cost)

    if config.send_email and notifier is not None:
        body_html, body_text = render_country_email(report_date.isoformat(), report.countries, report.total)
        report.email_sent = send_best_effort(notifier, config.email_recipients, EMAIL_SUBJECT, body_html, body_text)
    return report


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Email previous day's Google Ads spend by country")
    parser.add_argument("--project", type=str, default=None, help="Project name (default: first of ADS_PROJECTS)")
    parser.add_argument("--date", type=str, default=None, help="Report date YYYY-MM-DD (default: yesterday in account time zone)")
    parser.add_argument("--dry-run", action="store_true", help="Build the report but do not send email")
    args = parser.parse_args()

    report_date: Optional[date] = None
    try:
        if args.date:
            report_date = date.fromisoformat(args.date)
        config = load_report_config(args.project, send_email=False if args.dry_run else None)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    try:
        report = run_country_email(config, GoogleAdsReportSource(config.customer_id), SmtpNotificationSink(), report_date)
    except Exception as e:
        logger.exception("Country email failed: %s", e)
        sys.exit(1)
    if args.dry_run:
        for b in report.countries:
            logger.info("[dry-run] %s spend=%.2f clicks=%s", b.label, b.cost, b.clicks)


if __name__ == "__main__":
    main()
