"""
Ads Report Scripts – Google Ads report source (GAQL over GoogleAdsService.search_stream).

Rows come back flattened to dicts keyed by the selected GAQL field names
(e.g. {"campaign.name": "Brand", "metrics.cost_micros": 2500000}).
"""

import enum
import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

import grpc
from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException

from config import (
    GOOGLE_ADS_CLIENT_ID,
    GOOGLE_ADS_CLIENT_SECRET,
    GOOGLE_ADS_DEVELOPER_TOKEN,
    GOOGLE_ADS_LOGIN_CUSTOMER_ID,
    GOOGLE_ADS_REFRESH_TOKEN,
    normalize_customer_id,
)

logger = logging.getLogger(__name__)

_client: Optional[GoogleAdsClient] = None

_SELECT_RE = re.compile(r"^\s*SELECT\s+(.*?)\s+FROM\s", re.IGNORECASE | re.DOTALL)


class ReportQueryError(RuntimeError):
    """A GAQL query failed (API error, bad field, permission, transport)."""


class ReportSource(Protocol):
    def query(self, gaql: str) -> Iterator[Dict[str, Any]]:
        ...


def get_client() -> GoogleAdsClient:
    global _client
    if _client is None:
        if not all([GOOGLE_ADS_DEVELOPER_TOKEN, GOOGLE_ADS_CLIENT_ID, GOOGLE_ADS_CLIENT_SECRET, GOOGLE_ADS_REFRESH_TOKEN]):
            raise RuntimeError("Google Ads credentials not set in .env (DEVELOPER_TOKEN, CLIENT_ID, CLIENT_SECRET, REFRESH_TOKEN)")
        _client = GoogleAdsClient.load_from_dict({
            "developer_token": GOOGLE_ADS_DEVELOPER_TOKEN,
            "client_id": GOOGLE_ADS_CLIENT_ID,
            "client_secret": GOOGLE_ADS_CLIENT_SECRET,
            "refresh_token": GOOGLE_ADS_REFRESH_TOKEN,
            "login_customer_id": GOOGLE_ADS_LOGIN_CUSTOMER_ID or "",
            "use_proto_plus": True,
        })
    return _client


def build_query(
    resource: str,
    fields: Sequence[str],
    where: Optional[Sequence[str]] = None,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
) -> str:
    """Assemble a GAQL statement; where clauses are ANDed."""
    query = f"SELECT {', '.join(fields)} FROM {resource}"
    clauses = [w for w in (where or []) if w]
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    if order_by:
        query += f" ORDER BY {order_by}"
    if limit:
        query += f" LIMIT {int(limit)}"
    return query


def selected_fields(gaql: str) -> List[str]:
    """Field names from the SELECT clause, in order."""
    m = _SELECT_RE.match(gaql)
    if not m:
        raise ValueError(f"Not a GAQL SELECT statement: {gaql[:80]!r}")
    return [f.strip() for f in m.group(1).split(",") if f.strip()]


def _field_value(row: Any, path: str) -> Any:
    """Walk 'metrics.cost_micros' down a GoogleAdsRow; enums become their names."""
    val = row
    for part in path.split("."):
        if val is None:
            return None
        val = getattr(val, part, None)
    if isinstance(val, enum.Enum):
        return val.name
    return val


def flatten_row(row: Any, fields: Sequence[str]) -> Dict[str, Any]:
    return {f: _field_value(row, f) for f in fields}


class GoogleAdsReportSource:
    """Report source for one customer account."""

    def __init__(self, customer_id: str, client: Optional[GoogleAdsClient] = None):
        self.customer_id = normalize_customer_id(customer_id)
        if not self.customer_id:
            raise ValueError("Google Ads customer ID is required")
        self._client = client

    @property
    def client(self) -> GoogleAdsClient:
        if self._client is None:
            self._client = get_client()
        return self._client

    def query(self, gaql: str) -> Iterator[Dict[str, Any]]:
        """Stream the query, yielding one flattened dict per result row. Single pass."""
        fields = selected_fields(gaql)
        ga_service = self.client.get_service("GoogleAdsService")
        n = 0
        try:
            stream = ga_service.search_stream(customer_id=self.customer_id, query=gaql)
            for batch in stream:
                for row in batch.results:
                    n += 1
                    yield flatten_row(row, fields)
        except GoogleAdsException as ex:
            logger.error("Google Ads API error (request %s): %s", getattr(ex, "request_id", "?"), ex)
            raise ReportQueryError(f"Google Ads query failed: {ex}") from ex
        except grpc.RpcError as ex:
            # Transport failures (UNAVAILABLE, DEADLINE_EXCEEDED) bypass GoogleAdsException
            code = ex.code() if hasattr(ex, "code") else None
            logger.error("Google Ads transport error (%s): %s", code, ex)
            raise ReportQueryError(f"Google Ads query failed: {code}") from ex
        logger.info("query returned %s rows: %s", n, gaql[:120])


def fetch_account_info(source: ReportSource) -> Dict[str, str]:
    """Account name, customer id and time zone (falls back to the configured id and UTC)."""
    query = build_query("customer", ["customer.id", "customer.descriptive_name", "customer.time_zone"], limit=1)
    info = {"name": "", "customer_id": getattr(source, "customer_id", ""), "time_zone": "UTC"}
    try:
        for row in source.query(query):
            info["name"] = str(row.get("customer.descriptive_name") or "")
            if row.get("customer.id"):
                info["customer_id"] = str(row["customer.id"])
            info["time_zone"] = str(row.get("customer.time_zone") or "UTC")
            break
    except ReportQueryError as e:
        logger.warning("Could not retrieve account details: %s", e)
    return info


def fetch_country_names(source: ReportSource) -> Dict[str, str]:
    """geo_target_constant id -> country name. Empty on failure; callers label ids 'Unknown (<id>)'."""
    query = build_query(
        "geo_target_constant",
        ["geo_target_constant.id", "geo_target_constant.name"],
        where=["geo_target_constant.target_type = 'Country'"],
    )
    names: Dict[str, str] = {}
    try:
        for row in source.query(query):
            gid = row.get("geo_target_constant.id")
            if gid is not None:
                names[str(gid)] = str(row.get("geo_target_constant.name") or "")
    except ReportQueryError as e:
        logger.warning("Error fetching country names: %s", e)
        return {}
    logger.info("fetch_country_names: %s countries", len(names))
    return names


def country_label(criterion_id: Any, names: Dict[str, str]) -> str:
    cid = str(criterion_id) if criterion_id is not None else ""
    return names.get(cid) or f"Unknown ({cid})"
