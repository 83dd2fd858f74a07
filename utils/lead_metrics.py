# utils/lead_metrics.py
"""
Pure aggregate helpers over a list of leads (ORM rows or plain dicts).
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from db.models import LeadStage
from utils.time_and_ids import to_office

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

WON = LeadStage.won.value
PROPOSAL_SENT = LeadStage.proposal_sent.value


def _get(lead: Any, field: str, default=None):
    if isinstance(lead, dict):
        return lead.get(field, default)
    return getattr(lead, field, default)


def _value(lead: Any) -> float:
    return float(_get(lead, "value") or 0)


def stage_counts(leads: Iterable[Any]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for lead in leads:
        stage = _get(lead, "stage")
        counts[stage] = counts.get(stage, 0) + 1
    return counts


def won_leads(leads: Iterable[Any]) -> List[Any]:
    return [l for l in leads if _get(l, "stage") == WON]


def total_revenue(leads: Iterable[Any]) -> float:
    return sum(_value(l) for l in won_leads(leads))


def conversion_rate(leads: Iterable[Any]) -> int:
    leads = list(leads)
    if not leads:
        return 0
    return round(len(won_leads(leads)) / len(leads) * 100)


def avg_deal_size(leads: Iterable[Any]) -> float:
    won = won_leads(leads)
    if not won:
        return 0
    return round(total_revenue(won) / len(won), 2)


def active_proposals(leads: Iterable[Any]) -> int:
    return sum(1 for l in leads if _get(l, "stage") == PROPOSAL_SENT)


def monthly_stats(leads: Iterable[Any]) -> List[Dict[str, Any]]:
    buckets: Dict[tuple, Dict[str, Any]] = {}
    for lead in leads:
        created = to_office(_get(lead, "created_at"))
        if created is None:
            continue
        key = (created.year, created.month)
        row = buckets.setdefault(key, {
            "month": MONTH_NAMES[created.month - 1],
            "year": created.year,
            "leads": 0,
            "revenue": 0.0,
        })
        row["leads"] += 1
        if _get(lead, "stage") == WON:
            row["revenue"] += _value(lead)
    return [buckets[k] for k in sorted(buckets)]


def daily_stats(leads: Iterable[Any], call_times: Optional[Iterable[Any]] = None) -> List[Dict[str, Any]]:
    """Per-day lead, proposal and call counts, oldest day first."""
    days: Dict[str, Dict[str, Any]] = OrderedDict()

    def _row(day: str) -> Dict[str, Any]:
        return days.setdefault(day, {"date": day, "leads": 0, "proposals": 0, "calls": 0})

    for lead in leads:
        created = to_office(_get(lead, "created_at"))
        if created is None:
            continue
        row = _row(created.strftime("%Y-%m-%d"))
        row["leads"] += 1
        if _get(lead, "stage") == PROPOSAL_SENT:
            row["proposals"] += 1

    for ts in call_times or []:
        _row(to_office(ts).strftime("%Y-%m-%d"))["calls"] += 1

    return [days[d] for d in sorted(days)]


def user_stats(leads: Iterable[Any], names: Dict[str, str]) -> List[Dict[str, Any]]:
    """Per-assignee breakdown; ``names`` maps employee_code to display name."""
    per_user: Dict[Optional[str], Dict[str, Any]] = {}
    stage_keys = {
        LeadStage.new.value: "new_leads",
        LeadStage.contacted.value: "contacted",
        LeadStage.proposal_sent.value: "proposals",
        LeadStage.negotiation.value: "negotiation",
        LeadStage.won.value: "won",
        LeadStage.lost.value: "lost",
    }
    for lead in leads:
        owner = _get(lead, "assigned_by")
        row = per_user.setdefault(owner, {
            "user_id": owner,
            "name": names.get(owner, "Unassigned") if owner else "Unassigned",
            "leads": 0, "won": 0, "revenue": 0.0, "proposals": 0,
            "new_leads": 0, "contacted": 0, "negotiation": 0, "lost": 0,
        })
        row["leads"] += 1
        key = stage_keys.get(_get(lead, "stage"))
        if key:
            row[key] += 1
        if _get(lead, "stage") == WON:
            row["revenue"] += _value(lead)
    return list(per_user.values())
