"""
Ads Report Scripts – email bodies (HTML + plain text).

Period-over-period change: arrow and colour by direction, absolute and percent
change, "(New)" when the prior value was 0. For cost an increase is shown red;
for entity counts an increase is shown green.
"""

import html
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from aggregation import MetricsBucket
from mail_sink import NotificationSink
from new_queries import CampaignGroup

logger = logging.getLogger(__name__)

COLOR_NEUTRAL = "#333"
COLOR_GOOD = "#27ae60"
COLOR_BAD = "#c0392b"
COLOR_NEW = "#2980b9"

_CELL = "padding: 8px 4px; border-bottom: 1px solid #eee;"
_CELL_RIGHT = "text-align: right; " + _CELL


def format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def format_count(n: float) -> str:
    if float(n).is_integer():
        return f"{int(n):,}"
    return f"{n:,.2f}"


def format_percentage(ratio: float) -> str:
    return f"{ratio * 100:.2f}%"


def _change_amount(change: float, is_currency: bool) -> str:
    return format_currency(abs(change)) if is_currency else format_count(abs(change))


def _percent(current: float, prior: float) -> float:
    change = current - prior
    if prior > 0:
        return change / prior
    return 1.0 if current > 0 else 0.0


def change_html(current: float, prior: float, is_currency: bool = False) -> str:
    if prior == 0 and current > 0:
        return f'<span style="color: {COLOR_NEW}; font-weight: bold;">(New)</span>'
    change = current - prior
    if change == 0:
        color, arrow = COLOR_NEUTRAL, ""
    elif is_currency:
        color = COLOR_BAD if change > 0 else COLOR_GOOD
        arrow = "▲" if change > 0 else "▼"
    else:
        color = COLOR_GOOD if change > 0 else COLOR_BAD
        arrow = "▲" if change > 0 else "▼"
    pct = _percent(current, prior) * 100
    return (
        f'<span style="color: {color}; font-weight: bold;">'
        f"{arrow} {_change_amount(change, is_currency)} ({pct:.1f}%)</span>"
    )


def change_text(current: float, prior: float, is_currency: bool = False) -> str:
    if prior == 0 and current > 0:
        return "(New)"
    change = current - prior
    if change == 0:
        return "0 (0.0%)"
    sign = "+" if change > 0 else "-"
    return f"{sign}{_change_amount(change, is_currency)} ({_percent(current, prior) * 100:.1f}%)"


@dataclass
class SummaryMetric:
    label: str
    current: float
    prior: float
    is_currency: bool = False

    def display(self, value: float) -> str:
        return format_currency(value) if self.is_currency else format_count(value)


def render_period_summary(metrics: Sequence[SummaryMetric], period_label: str) -> Tuple[str, str]:
    rows_html = "".join(
        f'<tr><td style="{_CELL}">{html.escape(m.label)}</td>'
        f'<td style="{_CELL_RIGHT}">{m.display(m.current)}</td>'
        f'<td style="{_CELL_RIGHT}">{m.display(m.prior)}</td>'
        f'<td style="{_CELL_RIGHT}">{change_html(m.current, m.prior, m.is_currency)}</td></tr>'
        for m in metrics
    )
    summary_html = (
        '<h3 style="color: #333; border-bottom: 1px solid #ccc; padding-bottom: 5px;">Performance Summary</h3>'
        f'<p style="font-size: 12px; color: #666;">{html.escape(period_label)} vs. Prior Period</p>'
        '<table style="width: 100%; border-collapse: collapse; font-size: 14px; margin-top: 10px;">'
        '<tr style="font-weight: bold; color: #555;"><td style="text-align: left; padding: 8px 4px;">Metric</td>'
        '<td style="text-align: right; padding: 8px 4px;">Current</td>'
        '<td style="text-align: right; padding: 8px 4px;">Prior</td>'
        '<td style="text-align: right; padding: 8px 4px;">Change</td></tr>'
        f"{rows_html}</table>"
    )
    rule = "-" * 64
    lines = [
        f"Performance Summary ({period_label} vs. Prior Period)",
        rule,
        f"{'Metric':<24}{'Current':<15}{'Prior':<15}Change",
        rule,
    ]
    for m in metrics:
        lines.append(
            f"{m.label:<24}{m.display(m.current):<15}{m.display(m.prior):<15}"
            f"{change_text(m.current, m.prior, m.is_currency)}"
        )
    return summary_html, "\n".join(lines)


def render_dashboard_email(
    account_name: str,
    account_id: str,
    spreadsheet_url: str,
    metrics: Sequence[SummaryMetric],
    period_label: str,
    generated_at: str,
) -> Tuple[str, str]:
    summary_html, summary_text = render_period_summary(metrics, period_label)
    name = html.escape(account_name)
    url = html.escape(spreadsheet_url, quote=True)
    body_html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #333;">'
        '<h2 style="color: #4285f4;">Google Ads Performance Dashboard Updated</h2>'
        f"<p>Your Google Ads Performance Dashboard for <strong>{name} ({html.escape(account_id)})</strong> "
        "has been updated successfully.</p>"
        f"{summary_html}"
        f'<p style="margin: 25px 0; text-align: center;"><a href="{url}" style="background-color: #4285f4; '
        'color: white; padding: 12px 25px; text-decoration: none; border-radius: 5px; display: inline-block;">'
        "View Full Dashboard</a></p>"
        '<hr style="border: none; border-top: 1px solid #e0e0e0; margin: 20px 0;">'
        f'<p style="color: #666; font-size: 12px;">This report was generated automatically on {html.escape(generated_at)}.</p>'
        "</div>"
    )
    body_text = (
        "Your Google Ads Performance Dashboard has been updated successfully.\n\n"
        f"Account: {account_name} ({account_id})\n"
        f"{summary_text}\n\n"
        f"View the full dashboard: {spreadsheet_url}\n\n"
        f"This report was generated automatically on {generated_at}."
    )
    return body_html, body_text


COUNTRY_HEADERS = ("Country", "Spend", "Impressions", "Clicks", "CTR", "Avg. CPC", "Conversions")


def _country_cells(label: str, b: MetricsBucket) -> List[str]:
    m = b.metrics
    return [
        label,
        format_currency(b.cost),
        format_count(b.impressions),
        format_count(b.clicks),
        format_percentage(m.ctr),
        format_currency(m.avg_cpc),
        format_count(b.conversions),
    ]


def render_country_email(report_date: str, countries: Sequence[MetricsBucket], total: MetricsBucket) -> Tuple[str, str]:
    header_html = "".join(f"<th>{h}</th>" for h in COUNTRY_HEADERS)
    rows_html = "".join(
        "<tr>" + "".join(f"<td>{html.escape(c)}</td>" for c in _country_cells(b.label, b)) + "</tr>"
        for b in countries
    )
    total_html = '<tr class="total-row">' + "".join(f"<td>{c}</td>" for c in _country_cells("TOTAL", total)) + "</tr>"
    body_html = (
        "<html><head><style>"
        "table { border-collapse: collapse; width: 100%; font-family: Arial, sans-serif; }"
        "th, td { border: 1px solid #dddddd; text-align: left; padding: 8px; }"
        "th { background-color: #f2f2f2; }"
        ".total-row { font-weight: bold; background-color: #e6e6e6; }"
        "</style></head><body>"
        f"<h2>Country Spend Report for {html.escape(report_date)}</h2>"
        f"<p><strong>Total Account Spend: {format_currency(total.cost)}</strong></p>"
        f"<table><tr>{header_html}</tr>{rows_html}{total_html}</table>"
        "</body></html>"
    )
    widths = (28, 14, 14, 10, 10, 12, 12)
    lines = [
        f"Country Spend Report for {report_date}",
        f"Total Account Spend: {format_currency(total.cost)}",
        "",
        "".join(h.ljust(w) for h, w in zip(COUNTRY_HEADERS, widths)).rstrip(),
    ]
    for b in list(countries) + [total]:
        label = "TOTAL" if b is total else b.label
        lines.append("".join(c.ljust(w) for c, w in zip(_country_cells(label, b), widths)).rstrip())
    return body_html, "\n".join(lines)


def render_new_queries_email(report_date: str, groups: Sequence[CampaignGroup], sheet_url: str) -> Tuple[str, str]:
    url = html.escape(sheet_url, quote=True)
    if not groups:
        body_html = (
            f"<html><body><p>No new search queries with &gt;0 clicks from {html.escape(report_date)}.</p>"
            f'<p>View details (including zero-click queries) in the sheet: <a href="{url}">{url}</a></p></body></html>'
        )
        body_text = (
            f"No new search queries with >0 clicks from {report_date}.\n"
            f"View details (including zero-click queries) in the sheet: {sheet_url}"
        )
        return body_html, body_text

    parts = [f"<html><body><h2>New search queries with clicks from {html.escape(report_date)} grouped by campaign:</h2>"]
    lines = [f"New search queries with clicks from {report_date} grouped by campaign:", ""]
    for group in groups:
        parts.append(
            f"<h3>Campaign: {html.escape(group.campaign_name)}</h3>"
            '<table border="1" style="border-collapse: collapse;">'
            "<thead><tr><th>Search Term</th><th>Impressions</th><th>Clicks</th><th>Cost</th></tr></thead><tbody>"
        )
        lines.append(f"Campaign: {group.campaign_name} ({group.total_clicks} clicks)")
        for item in group.items:
            parts.append(
                f"<tr><td>{html.escape(item.search_term)}</td><td>{item.impressions}</td>"
                f"<td>{item.clicks}</td><td>{item.cost:.2f}</td></tr>"
            )
            lines.append(f"  {item.search_term} | impr {item.impressions} | clicks {item.clicks} | cost {item.cost:.2f}")
        parts.append("</tbody></table><br>")
        lines.append("")
    parts.append(f'<p>View details in the sheet: <a href="{url}">{url}</a></p></body></html>')
    lines.append(f"View details in the sheet: {sheet_url}")
    return "".join(parts), "\n".join(lines)


def send_best_effort(sink: NotificationSink, recipients: Sequence[str], subject: str, body_html: str, body_text: str) -> bool:
    """Send and log; a failed notification never fails the run."""
    if not recipients:
        logger.warning("Email notification is enabled but no valid recipient email address is configured.")
        return False
    try:
        sink.send(list(recipients), subject, body_html, body_text)
    except Exception as e:
        logger.error("Failed to send email '%s': %s", subject, e)
        return False
    return True
