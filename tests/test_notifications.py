from aggregation import MetricsBucket
from new_queries import CampaignGroup, SearchTermRow
from notifications import (
    COLOR_BAD,
    COLOR_GOOD,
    SummaryMetric,
    change_html,
    change_text,
    format_count,
    format_currency,
    format_percentage,
    render_country_email,
    render_dashboard_email,
    render_new_queries_email,
    send_best_effort,
)
from tests.conftest import RecordingNotifier


def test_formatters():
    assert format_currency(1234.5) == "$1,234.50"
    assert format_count(1234) == "1,234"
    assert format_count(3.5) == "3.50"
    assert format_count(2.0) == "2"
    assert format_percentage(0.0425) == "4.25%"


def test_new_marker_when_prior_is_zero():
    assert change_text(10, 0) == "(New)"
    assert "(New)" in change_html(10, 0, is_currency=True)


def test_no_change():
    assert change_text(0, 0) == "0 (0.0%)"
    assert change_text(5, 5) == "0 (0.0%)"


def test_change_text_signs():
    assert change_text(120, 100, is_currency=True) == "+$20.00 (20.0%)"
    assert change_text(80, 100) == "-20 (-20.0%)"


def test_cost_increase_is_red_and_count_increase_is_green():
    cost_up = change_html(120, 100, is_currency=True)
    assert COLOR_BAD in cost_up
    assert "▲" in cost_up
    count_up = change_html(12, 10)
    assert COLOR_GOOD in count_up
    count_down = change_html(8, 10)
    assert COLOR_BAD in count_down
    assert "▼" in count_down


def test_dashboard_email_has_summary_and_link():
    metrics = [SummaryMetric("Total Cost", 150.0, 100.0, is_currency=True), SummaryMetric("Active Campaigns", 3, 0)]
    body_html, body_text = render_dashboard_email(
        "Acme <Store>", "1234567890", "https://docs.google.com/spreadsheets/d/abc", metrics, "LAST 7 DAYS", "2025-03-15 09:00:00 EST"
    )
    assert "Acme &lt;Store&gt;" in body_html
    assert 'href="https://docs.google.com/spreadsheets/d/abc"' in body_html
    assert "$150.00" in body_html
    assert "(New)" in body_html
    assert "Total Cost" in body_text
    assert "+$50.00 (50.0%)" in body_text
    assert "LAST 7 DAYS vs. Prior Period" in body_text


def test_country_email_lists_countries_and_total():
    us = MetricsBucket(key=("United States",), clicks=10, impressions=200, cost_micros=50_000_000, conversions=2.0)
    fr = MetricsBucket(key=("France",), clicks=5, impressions=100, cost_micros=10_000_000)
    total = MetricsBucket(clicks=15, impressions=300, cost_micros=60_000_000, conversions=2.0)
    body_html, body_text = render_country_email("2025-03-14", [us, fr], total)
    assert "Country Spend Report for 2025-03-14" in body_html
    assert "Total Account Spend: $60.00" in body_html
    assert body_html.index("United States") < body_html.index("France")
    assert 'class="total-row"' in body_html
    assert "5.00%" in body_html
    assert body_text.splitlines()[-1].startswith("TOTAL")


def test_new_queries_email_without_groups():
    body_html, body_text = render_new_queries_email("2025-03-14", [], "https://sheet")
    assert "No new search queries with &gt;0 clicks from 2025-03-14" in body_html
    assert body_text.startswith("No new search queries with >0 clicks from 2025-03-14")


def test_new_queries_email_groups_in_order():
    groups = [
        CampaignGroup("B", 10, [SearchTermRow("green hat", "2", "B", "21", "AG", 40, 10, 3.5)]),
        CampaignGroup("A", 8, [SearchTermRow("blue shoes", "1", "A", "11", "AG", 10, 5, 1.23)]),
    ]
    body_html, body_text = render_new_queries_email("2025-03-14", groups, "https://sheet")
    assert body_html.index("Campaign: B") < body_html.index("Campaign: A")
    assert "<td>1.23</td>" in body_html
    assert "Campaign: B (10 clicks)" in body_text


def test_send_best_effort_swallows_failures():
    assert send_best_effort(RecordingNotifier(fail=True), ["a@example.com"], "s", "<p>h</p>", "t") is False


def test_send_best_effort_needs_recipients():
    notifier = RecordingNotifier()
    assert send_best_effort(notifier, [], "s", "h", "t") is False
    assert notifier.sent == []


def test_send_best_effort_sends():
    notifier = RecordingNotifier()
    assert send_best_effort(notifier, ["a@example.com"], "subject", "h", "t") is True
    assert notifier.sent[0]["subject"] == "subject"
