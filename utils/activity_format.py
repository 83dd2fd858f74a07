from typing import Any, Dict, List, Optional

MAX_FIELDS = 5
IGNORED_FIELDS = {"points_of_contact", "remarks", "files", "documents"}


def _label(field: str) -> str:
    return field.replace("_", " ").strip().capitalize()


def format_updated_fields(changes: Optional[List[Dict[str, Any]]]) -> str:
    """
    One-line description of a change set: up to five field names, then "...".
    A change set that only touches a remark reads "new remark added" or
    "remark removed".
    """
    if not changes:
        return ""

    fields = [c.get("field") for c in changes if c.get("field") not in IGNORED_FIELDS]
    remark_changes = [c for c in changes if c.get("field") == "remark"]
    others = [f for f in fields if f != "remark"]

    if remark_changes and not others:
        if remark_changes[-1].get("new_value") is None:
            return "remark removed"
        return "new remark added"

    names = [_label(f) for f in others]
    if len(names) > MAX_FIELDS:
        return ", ".join(names[:MAX_FIELDS]) + ", ..."
    return ", ".join(names)
