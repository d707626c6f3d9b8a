"""
Ads Report Scripts – new search query detection.

A search term is "new" when its normalized text (trimmed, lower-cased) never
appeared in the history window.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Set

from aggregation import micros_to_currency, parse_int

SEARCH_TERM_FIELD = "search_term_view.search_term"


def normalize_term(term: Any) -> str:
    return str(term or "").strip().lower()


@dataclass
class SearchTermRow:
    search_term: str
    campaign_id: str
    campaign_name: str
    ad_group_id: str
    ad_group_name: str
    impressions: int
    clicks: int
    cost: float

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SearchTermRow":
        return cls(
            search_term=str(record.get(SEARCH_TERM_FIELD) or ""),
            campaign_id=str(record.get("campaign.id") or ""),
            campaign_name=str(record.get("campaign.name") or ""),
            ad_group_id=str(record.get("ad_group.id") or ""),
            ad_group_name=str(record.get("ad_group.name") or ""),
            impressions=parse_int(record.get("metrics.impressions")),
            clicks=parse_int(record.get("metrics.clicks")),
            cost=round(micros_to_currency(record.get("metrics.cost_micros")), 2),
        )


@dataclass
class CampaignGroup:
    campaign_name: str
    total_clicks: int = 0
    items: List[SearchTermRow] = field(default_factory=list)


def history_terms(history: Iterable[Dict[str, Any]]) -> Set[str]:
    return {normalize_term(r.get(SEARCH_TERM_FIELD)) for r in history}


def find_new_search_terms(
    recent: Iterable[Dict[str, Any]],
    history: Iterable[Dict[str, Any]],
) -> List[SearchTermRow]:
    """Recent rows whose term is absent from history, sorted by clicks descending (stable)."""
    seen = history_terms(history)
    new_rows = [
        SearchTermRow.from_record(r)
        for r in recent
        if normalize_term(r.get(SEARCH_TERM_FIELD)) not in seen
    ]
    new_rows.sort(key=lambda r: r.clicks, reverse=True)
    return new_rows


def group_by_campaign(rows: Iterable[SearchTermRow]) -> List[CampaignGroup]:
    """Campaigns by total clicks descending then name; items within each by clicks descending."""
    groups: Dict[str, CampaignGroup] = {}
    for row in rows:
        group = groups.get(row.campaign_name)
        if group is None:
            group = groups[row.campaign_name] = CampaignGroup(campaign_name=row.campaign_name)
        group.items.append(row)
        group.total_clicks += row.clicks
    for group in groups.values():
        group.items.sort(key=lambda r: r.clicks, reverse=True)
    return sorted(groups.values(), key=lambda g: (-g.total_clicks, g.campaign_name))
