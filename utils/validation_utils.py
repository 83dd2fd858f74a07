# utils/validation_utils.py
"""
Validation helpers shared by the update routes and the bulk importer.
"""

from typing import Iterable, List, Optional, Dict, Any
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from db.models import Lead


LINKEDIN_PREFIX = "https://www.linkedin.com/"


class ValidationError(Exception):
    """Raised for business-rule violations on incoming lead data"""
    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


def normalize_url(url: Optional[str]) -> Optional[str]:
    """
    Canonical form of a company website: https, no ``www.``, no trailing slash.
    Values that do not parse as an absolute URL are returned untouched.
    """
    if not url:
        return url
    raw = url.strip()
    parsed = urlparse(raw)
    if not parsed.scheme or not parsed.hostname:
        return raw

    hostname = parsed.hostname
    if hostname.startswith("www."):
        hostname = hostname[4:]
    path = parsed.path.rstrip("/")
    return f"https://{hostname}{path}"


def contact_phones(points_of_contact: Iterable[Any]) -> List[str]:
    """Every non-empty phone and alternate phone across the contacts."""
    phones: List[str] = []
    for contact in points_of_contact or []:
        if isinstance(contact, dict):
            values = (contact.get("phone"), contact.get("alternate_phone"))
        else:
            values = (getattr(contact, "phone", None), getattr(contact, "alternate_phone", None))
        phones.extend(p.strip() for p in values if p and p.strip())
    return phones


def has_duplicate_phones(points_of_contact: Iterable[Any]) -> bool:
    phones = contact_phones(points_of_contact)
    return len(phones) != len(set(phones))


def validate_linkedin_url(url: Optional[str]) -> None:
    if url and not url.startswith(LINKEDIN_PREFIX):
        raise ValidationError(f"LinkedIn URL must start with {LINKEDIN_PREFIX}", field="linkedin_url")


def find_lead_by_website(db: Session, website_url: str, exclude_lead_id: int = None) -> Optional[Lead]:
    query = db.query(Lead).filter(Lead.website_url == normalize_url(website_url))
    if exclude_lead_id:
        query = query.filter(Lead.id != exclude_lead_id)
    return query.first()


def lead_conflict(db: Session, website_url: str, exclude_lead_id: int = None) -> Optional[Dict[str, Any]]:
    existing = find_lead_by_website(db, website_url, exclude_lead_id)
    if not existing:
        return None
    return {
        "lead_id": existing.id,
        "company_name": existing.company_name,
        "message": f"Lead already exists (#{existing.id} {existing.company_name})",
    }


def drop_null_required(model, data: Dict[str, Any]) -> Dict[str, Any]:
    """Remove keys whose value is None but whose column is NOT NULL on ``model``."""
    columns = model.__table__.c
    for field in [k for k, v in data.items() if v is None]:
        if field in columns and not columns[field].nullable:
            data.pop(field)
    return data
