"""
Ads Report Scripts – new search query monitor.

Finds yesterday's search terms that did not appear in the prior N days
(SEARCH_TERM_HISTORY_DAYS, default 180), writes them to a tab named
"<account> - <last 4 of id> - <date>", and emails the ones with clicks grouped
by campaign.

  python search_term_monitor.py [--project NAME] [--date YYYY-MM-DD] [--history-days N] [--no-email]
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from config import SEARCH_TERMS_SPREADSHEET_ID, DateRange, ReportConfig, account_now, load_report_config
from google_ads_client import GoogleAdsReportSource, ReportSource, build_query, fetch_account_info
from mail_sink import NotificationSink, SmtpNotificationSink
from new_queries import SEARCH_TERM_FIELD, SearchTermRow, find_new_search_terms, group_by_campaign
from notifications import render_new_queries_email, send_best_effort
from sheets_sink import SheetsTabularSink, SinkConfigError, TabularSink

logger = logging.getLogger(__name__)

SHEET_HEADERS = ["Campaign Name", "Campaign ID", "Ad Group Name", "Ad Group ID", "Search Term", "Impressions", "Clicks", "Cost"]

RECENT_FIELDS = [
    SEARCH_TERM_FIELD,
    "metrics.impressions",
    "metrics.clicks",
    "metrics.cost_micros",
    "campaign.id",
    "campaign.name",
    "ad_group.id",
    "ad_group.name",
]


@dataclass
class MonitorResult:
    report_date: date
    recent_count: int = 0
    new_terms: List[SearchTermRow] = field(default_factory=list)
    sheet_name: Optional[str] = None
    email_sent: bool = False


def recent_query(report_date: date) -> str:
    return build_query("search_term_view", RECENT_FIELDS, where=[DateRange(start=report_date, end=report_date).gaql_predicate()])


def history_query(report_date: date, history_days: int) -> str:
    start = report_date - timedelta(days=history_days)
    end = report_date - timedelta(days=1)
    return build_query("search_term_view", [SEARCH_TERM_FIELD], where=[DateRange(start=start, end=end).gaql_predicate()])


def sheet_name_for(account_name: str, customer_id: str, report_date: date) -> str:
    return f"{account_name} - {customer_id[-4:]} - {report_date.isoformat()}"


def _sheet_row(r: SearchTermRow) -> list:
    return [r.campaign_name, r.campaign_id, r.ad_group_name, r.ad_group_id, r.search_term, r.impressions, r.clicks, r.cost]


def run_search_term_monitor(
    config: ReportConfig,
    source: ReportSource,
    sink: TabularSink,
    notifier: Optional[NotificationSink] = None,
    report_date: Optional[date] = None,
    spreadsheet_url: str = "",
) -> MonitorResult:
    account = fetch_account_info(source)
    if report_date is None:
        report_date = account_now(account["time_zone"]).date() - timedelta(days=1)
    result = MonitorResult(report_date=report_date)

    recent = list(source.query(recent_query(report_date)))
    result.recent_count = len(recent)
    if not recent:
        logger.info("No search terms for %s; nothing to report.", report_date.isoformat())
        return result

    history = source.query(history_query(report_date, config.history_days))
    result.new_terms = find_new_search_terms(recent, history)
    if not result.new_terms:
        logger.info("No new search queries found.")
        return result

    account_name = account["name"] or config.project
    result.sheet_name = sheet_name_for(account_name, account["customer_id"] or config.customer_id, report_date)
    sink.write_report(result.sheet_name, SHEET_HEADERS, [_sheet_row(r) for r in result.new_terms])

    if config.send_email and notifier is not None:
        with_clicks = [r for r in result.new_terms if r.clicks > 0]
        body_html, body_text = render_new_queries_email(
            report_date.isoformat(),
            group_by_campaign(with_clicks),
            spreadsheet_url or getattr(sink, "url", ""),
        )
        subject = f"{account_name} - New Search Queries - {report_date.isoformat()}"
        result.email_sent = send_best_effort(notifier, config.email_recipients, subject, body_html, body_text)

    logger.info(
        "Report generated. New queries: %s; with clicks: %s",
        len(result.new_terms),
        sum(1 for r in result.new_terms if r.clicks > 0),
    )
    return result


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Find new Google Ads search queries (not seen in the prior N days)")
    parser.add_argument("--project", type=str, default=None, help="Project name (default: first of ADS_PROJECTS)")
    parser.add_argument("--date", type=str, default=None, help="Report date YYYY-MM-DD (default: yesterday in account time zone)")
    parser.add_argument("--history-days", type=int, default=None, help="History window in days (default: SEARCH_TERM_HISTORY_DAYS)")
    parser.add_argument("--no-email", action="store_true", help="Do not send the email")
    args = parser.parse_args()

    report_date: Optional[date] = None
    try:
        if args.date:
            report_date = date.fromisoformat(args.date)
        config = load_report_config(
            args.project,
            spreadsheet_id=SEARCH_TERMS_SPREADSHEET_ID or None,
            history_days=args.history_days,
            send_email=False if args.no_email else None,
        )
        sink = SheetsTabularSink(config.spreadsheet_id, config.credentials_path, setting_name="SEARCH_TERMS_SPREADSHEET_ID")
    except (ValueError, SinkConfigError) as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    try:
        run_search_term_monitor(config, GoogleAdsReportSource(config.customer_id), sink, SmtpNotificationSink(), report_date)
    except Exception as e:
        logger.exception("Search term monitor failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
