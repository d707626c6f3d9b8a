"""
Ads Report Scripts – config and credentials (from .env in this folder).
"""

import calendar
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

try:
    from dotenv import load_dotenv
except ImportError:
    load_dotenv = None

# Load .env from this project folder
_ROOT = Path(__file__).resolve().parent
_ENV_FILE = _ROOT / ".env"
if _ENV_FILE.exists() and load_dotenv:
    load_dotenv(_ENV_FILE)

# Google Ads
GOOGLE_ADS_DEVELOPER_TOKEN = os.getenv("GOOGLE_ADS_DEVELOPER_TOKEN", "")
GOOGLE_ADS_CLIENT_ID = os.getenv("GOOGLE_ADS_CLIENT_ID", "")
GOOGLE_ADS_CLIENT_SECRET = os.getenv("GOOGLE_ADS_CLIENT_SECRET", "")
GOOGLE_ADS_REFRESH_TOKEN = os.getenv("GOOGLE_ADS_REFRESH_TOKEN", "")
GOOGLE_ADS_LOGIN_CUSTOMER_ID = os.getenv("GOOGLE_ADS_LOGIN_CUSTOMER_ID", "")
GOOGLE_ADS_CUSTOMER_ID = os.getenv("GOOGLE_ADS_CUSTOMER_ID", "")

# Projects to report on (comma-separated); per-project account via GOOGLE_ADS_CUSTOMER_ID_<PROJECT>
ADS_PROJECTS = os.getenv("ADS_PROJECTS", "default")

# Google Sheets (service account JSON)
GOOGLE_SHEETS_CREDENTIALS_PATH = os.getenv("GOOGLE_SHEETS_CREDENTIALS_PATH", "")
REPORT_SPREADSHEET_ID = os.getenv("REPORT_SPREADSHEET_ID", "")
SEARCH_TERMS_SPREADSHEET_ID = os.getenv("SEARCH_TERMS_SPREADSHEET_ID", "")

# Report behaviour
REPORT_DATE_RANGE = os.getenv("REPORT_DATE_RANGE", "LAST_30_DAYS")
SEND_EMAIL_ON_COMPLETE = os.getenv("SEND_EMAIL_ON_COMPLETE", "true").lower() in ("1", "true", "yes")
EMAIL_RECIPIENTS = os.getenv("EMAIL_RECIPIENTS", "")
SEARCH_TERM_HISTORY_DAYS = int(os.getenv("SEARCH_TERM_HISTORY_DAYS", "180"))

# SMTP
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "")

# GAQL DURING presets accepted for the date range selector
DATE_RANGE_PRESETS = (
    "TODAY",
    "YESTERDAY",
    "LAST_7_DAYS",
    "LAST_14_DAYS",
    "LAST_30_DAYS",
    "THIS_MONTH",
    "LAST_MONTH",
)

PLACEHOLDER_RECIPIENT = "your-email@example.com"


def normalize_customer_id(customer_id: Optional[str]) -> str:
    """Normalize Google Ads customer ID (no dashes)."""
    if not customer_id:
        return ""
    return (customer_id or "").replace("-", "").strip()


def get_google_ads_customer_id(project: str) -> Optional[str]:
    """Resolve Google Ads customer ID for a project name.

    GOOGLE_ADS_CUSTOMER_ID_<PROJECT> (upper-cased, dashes to underscores) wins over
    the account-wide GOOGLE_ADS_CUSTOMER_ID.
    """
    env_key = "GOOGLE_ADS_CUSTOMER_ID_" + (project or "").upper().replace("-", "_")
    return os.getenv(env_key) or GOOGLE_ADS_CUSTOMER_ID or None


def account_now(time_zone: Optional[str]) -> datetime:
    """Current time in the account's IANA time zone (UTC if unknown)."""
    try:
        tz = ZoneInfo(time_zone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")
    return datetime.now(tz)


def parse_recipients(value: Optional[str]) -> List[str]:
    """Split a comma-separated recipient list, dropping blanks and the placeholder address."""
    if not value:
        return []
    out = []
    for part in value.split(","):
        addr = part.strip()
        if addr and addr != PLACEHOLDER_RECIPIENT:
            out.append(addr)
    return out


class DateRange(BaseModel):
    """Either a GAQL preset (LAST_30_DAYS, ...) or explicit start/end dates."""

    preset: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None

    @field_validator("preset")
    @classmethod
    def _check_preset(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if v not in DATE_RANGE_PRESETS:
            raise ValueError(f"Unknown date range {v!r}; expected one of {', '.join(DATE_RANGE_PRESETS)}")
        return v

    @model_validator(mode="after")
    def _check_shape(self) -> "DateRange":
        if self.preset is None:
            if self.start is None or self.end is None:
                raise ValueError("DateRange needs a preset or both start and end")
            if self.start > self.end:
                raise ValueError(f"DateRange start {self.start} is after end {self.end}")
        return self

    @classmethod
    def parse(cls, value: str) -> "DateRange":
        """Parse 'LAST_7_DAYS' or 'YYYY-MM-DD..YYYY-MM-DD'."""
        if ".." in value:
            start_str, end_str = value.split("..", 1)
            return cls(start=date.fromisoformat(start_str.strip()), end=date.fromisoformat(end_str.strip()))
        return cls(preset=value)

    def resolve(self, today: date) -> Tuple[date, date]:
        """Concrete (start, end) for this range, inclusive, relative to today in the account time zone."""
        if self.preset is None:
            return self.start, self.end
        if self.preset == "TODAY":
            return today, today
        if self.preset == "YESTERDAY":
            y = today - timedelta(days=1)
            return y, y
        if self.preset.startswith("LAST_") and self.preset.endswith("_DAYS"):
            days = int(self.preset[len("LAST_"):-len("_DAYS")])
            return today - timedelta(days=days), today - timedelta(days=1)
        if self.preset == "THIS_MONTH":
            return today.replace(day=1), today
        # LAST_MONTH
        last_of_prev = today.replace(day=1) - timedelta(days=1)
        return last_of_prev.replace(day=1), last_of_prev.replace(day=calendar.monthrange(last_of_prev.year, last_of_prev.month)[1])

    def prior_period(self, today: date) -> Tuple[date, date]:
        """Equal-length window ending the day before this range starts."""
        start, end = self.resolve(today)
        length = (end - start).days + 1
        prior_end = start - timedelta(days=1)
        return prior_end - timedelta(days=length - 1), prior_end

    def gaql_predicate(self) -> str:
        if self.preset is not None:
            return f"segments.date DURING {self.preset}"
        return f"segments.date BETWEEN '{self.start.isoformat()}' AND '{self.end.isoformat()}'"

    def label(self) -> str:
        """Human-readable label for emails (e.g. 'LAST 30 DAYS')."""
        if self.preset is not None:
            return self.preset.replace("_", " ")
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


class ReportConfig(BaseModel):
    """Settings for one workflow invocation. Built once and passed in; never read from module state."""

    project: str = "default"
    customer_id: str
    date_range: DateRange = Field(default_factory=lambda: DateRange(preset="LAST_30_DAYS"))
    spreadsheet_id: str = ""
    credentials_path: str = ""
    send_email: bool = True
    email_recipients: List[str] = Field(default_factory=list)
    history_days: int = 180

    @field_validator("customer_id")
    @classmethod
    def _clean_customer_id(cls, v: str) -> str:
        v = normalize_customer_id(v)
        if not v:
            raise ValueError("Google Ads customer ID is not configured (GOOGLE_ADS_CUSTOMER_ID)")
        return v

    @field_validator("history_days")
    @classmethod
    def _positive_history(cls, v: int) -> int:
        if v < 1:
            raise ValueError("history_days must be at least 1")
        return v


def load_report_config(project: Optional[str] = None, **overrides) -> ReportConfig:
    """Build a ReportConfig from .env settings; keyword overrides win (CLI flags, tests)."""
    project = project or ADS_PROJECTS.split(",")[0].strip() or "default"
    values = {
        "project": project,
        "customer_id": get_google_ads_customer_id(project) or "",
        "date_range": DateRange.parse(REPORT_DATE_RANGE),
        "spreadsheet_id": REPORT_SPREADSHEET_ID,
        "credentials_path": GOOGLE_SHEETS_CREDENTIALS_PATH,
        "send_email": SEND_EMAIL_ON_COMPLETE,
        "email_recipients": parse_recipients(EMAIL_RECIPIENTS),
        "history_days": SEARCH_TERM_HISTORY_DAYS,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ReportConfig(**values)
