"""
Ads Report Scripts – Google Sheets tabular sink.

Writes one report per tab: header row, data rows, optional summary row of
formulas. Header and data rows go in RAW; only the summary row uses
USER_ENTERED so its formulas evaluate. Formatting and
spreadsheet creation are left to whoever owns the spreadsheet.
"""

import logging
import os
import re
from typing import Any, List, Optional, Protocol, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_URL_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


class SinkConfigError(ValueError):
    """Sink cannot be used as configured (missing id, missing credentials, spreadsheet not reachable)."""


class TabularSink(Protocol):
    def write_report(
        self,
        name: str,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        summary: Optional[Sequence[Any]] = None,
    ) -> None:
        ...


def spreadsheet_id_from(value: Optional[str]) -> str:
    """Accept a bare spreadsheet id or a full docs.google.com URL."""
    value = (value or "").strip()
    m = _URL_ID_RE.search(value)
    return m.group(1) if m else value


def _a1(tab: str, cell: str = "A1") -> str:
    return "'" + tab.replace("'", "''") + "'!" + cell


class SheetsTabularSink:
    """Google Sheets API v4 writer for an existing spreadsheet."""

    def __init__(self, spreadsheet_id: str, credentials_path: str = "", service: Any = None, setting_name: str = "REPORT_SPREADSHEET_ID"):
        self.spreadsheet_id = spreadsheet_id_from(spreadsheet_id)
        if not self.spreadsheet_id or "YOUR_" in self.spreadsheet_id.upper():
            raise SinkConfigError(f"{setting_name} is not configured. Set it in .env to the Google Sheets spreadsheet ID or URL.")
        if service is None:
            if not credentials_path or not os.path.exists(credentials_path):
                raise SinkConfigError(
                    f"Google Sheets credentials file not found: {credentials_path!r}. "
                    f"Set GOOGLE_SHEETS_CREDENTIALS_PATH in .env"
                )
            credentials = service_account.Credentials.from_service_account_file(credentials_path, scopes=SHEETS_SCOPES)
            service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        self.service = service
        self._tabs = self._open(setting_name)

    @property
    def url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}"

    def _open(self, setting_name: str) -> List[str]:
        try:
            meta = self.service.spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        except HttpError as e:
            raise SinkConfigError(f"Unable to open spreadsheet {self.spreadsheet_id!r}. Please check {setting_name}: {e}") from e
        title = meta.get("properties", {}).get("title", "Unknown")
        tabs = [s.get("properties", {}).get("title", "") for s in meta.get("sheets", [])]
        logger.info("Opened spreadsheet %s (%s tabs)", title, len(tabs))
        return tabs

    def _ensure_tab(self, name: str) -> None:
        if name in self._tabs:
            return
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": name}}}]},
        ).execute()
        self._tabs.append(name)
        logger.info("Added sheet tab %s", name)

    def write_report(
        self,
        name: str,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        summary: Optional[Sequence[Any]] = None,
    ) -> None:
        self._ensure_tab(name)
        values = [list(headers)] + [list(r) for r in rows]
        sheets = self.service.spreadsheets()
        sheets.values().clear(spreadsheetId=self.spreadsheet_id, range=_a1(name, "A:ZZ"), body={}).execute()
        # Labels are free text (search terms, URLs); RAW keeps "=..." / "+..." from parsing as formulas
        sheets.values().update(
            spreadsheetId=self.spreadsheet_id,
            range=_a1(name),
            valueInputOption="RAW",
            body={"values": values},
        ).execute()
        if summary:
            sheets.values().update(
                spreadsheetId=self.spreadsheet_id,
                range=_a1(name, f"A{len(values) + 1}"),
                valueInputOption="USER_ENTERED",
                body={"values": [list(summary)]},
            ).execute()
        logger.info("Wrote %s rows to %s%s", len(rows), name, " (+ total)" if summary else "")
