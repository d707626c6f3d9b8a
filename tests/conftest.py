import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import pytest

from config import DateRange, ReportConfig
from google_ads_client import ReportQueryError

_FROM_RE = re.compile(r"\sFROM\s+(\w+)", re.IGNORECASE)

Rows = Union[List[Dict[str, Any]], Callable[[str], List[Dict[str, Any]]], Exception]


class FakeReportSource:
    """Canned rows per GAQL resource. A value may be a list, a callable(query) -> list, or an exception to raise."""

    def __init__(self, responses: Optional[Dict[str, Rows]] = None, customer_id: str = "1234567890"):
        self.responses: Dict[str, Rows] = dict(responses or {})
        self.customer_id = customer_id
        self.queries: List[str] = []

    def query(self, gaql: str) -> Iterator[Dict[str, Any]]:
        self.queries.append(gaql)
        resource = _FROM_RE.search(gaql).group(1)
        response = self.responses.get(resource, [])
        if isinstance(response, Exception):
            raise response
        rows = response(gaql) if callable(response) else response
        for row in rows:
            yield dict(row)

    def queries_for(self, resource: str) -> List[str]:
        return [q for q in self.queries if re.search(rf"\sFROM\s+{resource}\b", q)]


class RecordingSink:
    def __init__(self, url: str = "https://docs.google.com/spreadsheets/d/test-sheet"):
        self.url = url
        self.writes: List[Dict[str, Any]] = []

    def write_report(self, name, headers, rows, summary=None) -> None:
        self.writes.append({"name": name, "headers": list(headers), "rows": [list(r) for r in rows], "summary": summary})

    def by_name(self, name: str) -> Dict[str, Any]:
        matches = [w for w in self.writes if w["name"] == name]
        assert matches, f"no write for {name}; got {[w['name'] for w in self.writes]}"
        return matches[-1]


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []

    def send(self, recipients, subject, html, text) -> None:
        if self.fail:
            raise ConnectionError("smtp down")
        self.sent.append({"recipients": list(recipients), "subject": subject, "html": html, "text": text})


def query_error(message: str = "boom") -> ReportQueryError:
    return ReportQueryError(message)


ACCOUNT_ROW = {"customer.id": 1234567890, "customer.descriptive_name": "Acme Store", "customer.time_zone": "America/New_York"}


@pytest.fixture()
def report_config() -> ReportConfig:
    return ReportConfig(
        project="acme",
        customer_id="123-456-7890",
        date_range=DateRange(preset="LAST_7_DAYS"),
        spreadsheet_id="test-sheet",
        send_email=True,
        email_recipients=["ops@example.com"],
        history_days=180,
    )


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
