"""
Dashboard export workflow against a fake report source.

Prior-period queries are the only ones using an explicit BETWEEN range (the
configured range is a DURING preset), so responders branch on that.
"""
from datetime import date

import pytest

from config import DateRange
from dashboard_export import (
    count_prior_entities,
    date_range_from_args,
    export_section,
    fetch_prior_period_cost,
    run_dashboard_export,
)
from google_ads_client import ReportQueryError
from reports import ACCOUNT_DAILY, DASHBOARD_SECTIONS, TOP_CAMPAIGNS, TOP_COUNTRIES, TOP_LANDING_PAGES
from tests.conftest import ACCOUNT_ROW, FakeReportSource, RecordingNotifier, RecordingSink, query_error

TODAY = date(2025, 3, 15)


def _metrics(cost, clicks=0, impressions=0, conversions=0.0, value=0.0):
    return {
        "metrics.cost_micros": int(cost * 1_000_000),
        "metrics.clicks": clicks,
        "metrics.impressions": impressions,
        "metrics.conversions": conversions,
        "metrics.conversions_value": value,
        "metrics.all_conversions": conversions,
    }


def _customer(gaql):
    if "customer.descriptive_name" in gaql:
        return [ACCOUNT_ROW]
    if "BETWEEN" in gaql:
        return [{"metrics.cost_micros": 60_000_000}]
    return [
        {"segments.date": "2025-03-14", **_metrics(30, clicks=10, impressions=100)},
        {"segments.date": "2025-03-13", **_metrics(20, clicks=5, impressions=80)},
    ]


def _campaigns(gaql):
    if "BETWEEN" in gaql:
        return [{"campaign.name": "Brand", **_metrics(5)}]
    return [
        {"campaign.name": "Generic", **_metrics(20, clicks=4)},
        {"campaign.name": "Brand", **_metrics(30, clicks=10, conversions=2, value=90)},
        {"campaign.name": "Brand", **_metrics(5, clicks=1)},
    ]


def _responses(**overrides):
    responses = {
        "customer": _customer,
        "campaign": _campaigns,
        "ad_group": [
            {"campaign.name": "Brand", "ad_group.name": "Exact", **_metrics(35, clicks=11)},
            {"campaign.name": "Generic", "ad_group.name": "Broad", **_metrics(20, clicks=4)},
        ],
        "search_term_view": [
            {"search_term_view.search_term": "acme shoes", "campaign.name": "Brand", "ad_group.name": "Exact", **_metrics(12, clicks=6)},
        ],
        "landing_page_view": [
            {"landing_page_view.unexpanded_final_url": "https://acme.example/", **_metrics(50, clicks=15)},
        ],
        "geo_target_constant": [{"geo_target_constant.id": 2840, "geo_target_constant.name": "United States"}],
        "geographic_view": [
            {"geographic_view.country_criterion_id": 2250, **_metrics(10, clicks=3)},
            {"geographic_view.country_criterion_id": 2840, **_metrics(40, clicks=12)},
        ],
    }
    responses.update(overrides)
    return responses


def _run(report_config, responses=None, notifier=None):
    source = FakeReportSource(responses or _responses())
    sink = RecordingSink()
    notifier = notifier if notifier is not None else RecordingNotifier()
    result = run_dashboard_export(report_config, source, sink, notifier, today=TODAY)
    return result, source, sink, notifier


def test_writes_every_tab_in_order(report_config):
    _, _, sink, _ = _run(report_config)
    assert [w["name"] for w in sink.writes] == [s.sheet_name for s in DASHBOARD_SECTIONS]


def test_campaigns_are_aggregated_and_sorted_by_cost(report_config):
    _, _, sink, _ = _run(report_config)
    tab = sink.by_name("Top Campaigns")
    cost = tab["headers"].index("Cost")
    assert [(r[0], r[cost]) for r in tab["rows"]] == [("Brand", 35.0), ("Generic", 20.0)]
    assert tab["rows"][0][tab["headers"].index("Clicks")] == 11
    assert tab["summary"][0] == "Total"
    assert tab["summary"][1] == "=SUM(B2:B3)"


def test_account_daily_keeps_source_order(report_config):
    result, _, sink, _ = _run(report_config)
    tab = sink.by_name("Account Daily")
    assert [r[0] for r in tab["rows"]] == ["2025-03-14", "2025-03-13"]
    assert result.total_cost == 50.0


def test_countries_use_names_with_unknown_fallback(report_config):
    _, _, sink, _ = _run(report_config)
    assert [r[0] for r in sink.by_name("Top Countries")["rows"]] == ["United States", "Unknown (2250)"]


def test_prior_period_cost_and_counts(report_config):
    result, source, _, _ = _run(report_config)
    assert result.prior_cost == 60.0
    assert result.prior_counts["Active Campaigns"] == 1
    prior_queries = [q for q in source.queries if "BETWEEN" in q]
    assert prior_queries
    assert all("'2025-03-01' AND '2025-03-07'" in q for q in prior_queries)


def test_summary_email(report_config):
    result, _, _, notifier = _run(report_config)
    assert result.email_sent is True
    mail = notifier.sent[0]
    assert mail["subject"] == "[Acme Store] Google Ads Performance Dashboard Updated"
    assert mail["recipients"] == ["ops@example.com"]
    assert "Total Cost" in mail["text"]
    assert "$50.00" in mail["text"]
    assert "https://docs.google.com/spreadsheets/d/test-sheet" in mail["html"]
    assert "LAST 7 DAYS vs. Prior Period" in mail["text"]


def test_optional_section_failure_writes_note(report_config):
    result, _, sink, _ = _run(report_config, _responses(landing_page_view=query_error()))
    assert sink.by_name("Top Landing Pages")["rows"] == [["Could not retrieve top landing pages data. See logs for details."]]
    assert result.sections["Top Landing Pages"].failed is True
    # the sections after it still run
    assert sink.by_name("Top Countries")["rows"]


def test_primary_section_failure_aborts(report_config):
    with pytest.raises(ReportQueryError):
        _run(report_config, _responses(campaign=query_error()))


def test_empty_optional_section_writes_message(report_config):
    _, _, sink, _ = _run(report_config, _responses(landing_page_view=[]))
    tab = sink.by_name("Top Landing Pages")
    assert tab["rows"] == [[TOP_LANDING_PAGES.empty_message]]
    assert tab["summary"] is None


def test_country_name_lookup_failure_is_not_fatal(report_config):
    _, _, sink, _ = _run(report_config, _responses(geo_target_constant=query_error()))
    assert [r[0] for r in sink.by_name("Top Countries")["rows"]] == ["Unknown (2840)", "Unknown (2250)"]


def test_notification_failure_does_not_fail_run(report_config):
    result, _, sink, _ = _run(report_config, notifier=RecordingNotifier(fail=True))
    assert result.email_sent is False
    assert len(sink.writes) == len(DASHBOARD_SECTIONS)


def test_email_disabled(report_config):
    config = report_config.model_copy(update={"send_email": False})
    result, _, _, notifier = _run(config)
    assert notifier.sent == []
    assert result.email_sent is False


def test_fetch_prior_period_cost_degrades_to_zero():
    source = FakeReportSource({"customer": query_error()})
    assert fetch_prior_period_cost(source, DateRange(start=TODAY, end=TODAY)) == 0.0


def test_count_prior_entities():
    source = FakeReportSource({"campaign": [{"campaign.name": "A"}, {"campaign.name": "B"}, {"campaign.name": "A"}]})
    assert count_prior_entities(source, TOP_CAMPAIGNS, DateRange(start=TODAY, end=TODAY)) == 2
    assert count_prior_entities(FakeReportSource({"campaign": query_error()}), TOP_CAMPAIGNS, DateRange(start=TODAY, end=TODAY)) == 0


def test_export_section_empty_primary_writes_headers_only():
    sink = RecordingSink()
    result = export_section(FakeReportSource({"customer": []}), sink, ACCOUNT_DAILY, DateRange(preset="YESTERDAY"))
    assert result.rows == 0
    assert sink.writes[0]["rows"] == []
    assert sink.writes[0]["headers"][0] == "Date"


def test_prior_country_count_uses_resolved_names():
    rows = [
        {"geographic_view.country_criterion_id": 2840},
        {"geographic_view.country_criterion_id": 9840},
        {"geographic_view.country_criterion_id": 2250},
    ]
    names = {"2840": "United States", "9840": "United States", "2250": "France"}
    source = FakeReportSource({"geographic_view": rows})
    assert count_prior_entities(source, TOP_COUNTRIES, DateRange(start=TODAY, end=TODAY), names) == 2


def test_prior_country_count_matches_current_tab(report_config):
    geo = [
        {"geographic_view.country_criterion_id": 2840, **_metrics(40)},
        {"geographic_view.country_criterion_id": 9840, **_metrics(10)},
    ]
    names = [
        {"geo_target_constant.id": 2840, "geo_target_constant.name": "United States"},
        {"geo_target_constant.id": 9840, "geo_target_constant.name": "United States"},
    ]
    result, _, _, _ = _run(report_config, _responses(geographic_view=geo, geo_target_constant=names))
    assert result.sections["Top Countries"].rows == 1
    assert result.prior_counts["Active Countries"] == 1


def test_date_range_from_args():
    assert date_range_from_args(None, None, None) is None
    assert date_range_from_args("last_7_days", None, None).preset == "LAST_7_DAYS"
    explicit = date_range_from_args("LAST_7_DAYS", "2025-01-01", "2025-01-31")
    assert (explicit.start, explicit.end) == (date(2025, 1, 1), date(2025, 1, 31))


@pytest.mark.parametrize("start,end", [("2025-01-01", None), (None, "2025-01-31")])
def test_half_specified_range_is_rejected(start, end):
    with pytest.raises(ValueError, match="together"):
        date_range_from_args(None, start, end)
