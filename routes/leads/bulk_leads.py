import csv
import io
import json
import logging
import os
import re
from typing import Optional, List, Dict, Any

import openpyxl
from fastapi import APIRouter, Depends, HTTPException, File, UploadFile, Form
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from db.connection import get_db
from db.models import UserDetails, ActivityEntity, ActivityAction
from db.Schema.lead import LeadCreate, BulkUploadResponse
from routes.auth.auth_dependency import get_current_user
from routes.leads.leads import build_lead
from utils.activity_logger import record_activity, snapshot, creation_changes
from utils.files import read_capped
from utils.validation_utils import (
    ValidationError, normalize_url, validate_linkedin_url, find_lead_by_website,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/leads",
    tags=["bulk-lead-upload"],
)

# -------------------- Helpers --------------------
ALLOWED_EXTS = {".csv", ".xlsx", ".xlsm"}
FLAT_POC = re.compile(r"^points_of_contact\[(\d+)\]\.(\w+)$")


def _ext(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def validate_tabular_file(file: Optional[UploadFile]) -> str:
    """
    Validate presence + allowed extension. Returns normalized extension.
    """
    if not file or not file.filename:
        raise HTTPException(status_code=400, detail="File is required.")
    ext = _ext(file.filename)
    if ext not in ALLOWED_EXTS:
        raise HTTPException(status_code=400, detail="Only CSV/XLSX/XLSM files are allowed.")
    return ext


def _to_str(cell_val) -> str:
    """
    Normalize Excel cell values to string (trimmed). None => ''.
    """
    if cell_val is None:
        return ""
    if isinstance(cell_val, float) and cell_val.is_integer():
        return str(int(cell_val))
    return str(cell_val).strip()


def parse_csv_bytes(data: bytes) -> List[List[str]]:
    text = data.decode("utf-8-sig", errors="ignore")
    return list(csv.reader(io.StringIO(text, newline="")))


def parse_excel_bytes(data: bytes, sheet_name: Optional[str] = None) -> List[List[str]]:
    """
    Parse Excel (xlsx/xlsm) using openpyxl in read-only mode.
    Uses the first worksheet unless sheet_name provided.
    """
    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        if sheet_name:
            if sheet_name not in wb.sheetnames:
                raise HTTPException(status_code=400, detail=f"Sheet '{sheet_name}' not found in workbook.")
            ws = wb[sheet_name]
        else:
            ws = wb.worksheets[0]
        return [[_to_str(v) for v in r] for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def rows_to_records(rows: List[List[str]]) -> List[Dict[str, str]]:
    """First row is the header; blank rows are dropped."""
    if not rows:
        return []
    header = [h.strip() for h in rows[0]]
    records = []
    for row in rows[1:]:
        if not any((c or "").strip() for c in row):
            continue
        records.append({header[i]: (row[i] or "").strip() for i in range(min(len(header), len(row))) if header[i]})
    return records


def parse_points_of_contact(record: Dict[str, str]) -> List[Dict[str, Any]]:
    """
    Contacts come either as a JSON array in ``points_of_contact`` or as
    flattened ``points_of_contact[i].field`` columns.
    """
    raw = record.get("points_of_contact")
    if raw:
        raw = raw.strip()
        if raw.startswith('"') and raw.endswith('"'):
            raw = raw[1:-1]
        raw = raw.replace('""', '"')
        try:
            contacts = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"points_of_contact is not valid JSON: {e.msg}", field="points_of_contact")
        if isinstance(contacts, dict):
            contacts = [contacts]
        if not isinstance(contacts, list):
            raise ValidationError("points_of_contact must be a list", field="points_of_contact")
        return contacts

    flat: Dict[int, Dict[str, Any]] = {}
    for key, value in record.items():
        m = FLAT_POC.match(key)
        if m and value:
            flat.setdefault(int(m.group(1)), {})[m.group(2)] = value
    return [flat[i] for i in sorted(flat) if flat[i].get("name") or flat[i].get("phone")]


def _int_or_none(value: Optional[str], field: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(float(value))
    except ValueError:
        raise ValidationError(f"{field} must be a number", field=field)


def record_to_payload(record: Dict[str, str]) -> Dict[str, Any]:
    contacts = parse_points_of_contact(record)
    for poc in contacts:
        validate_linkedin_url(poc.get("linkedin_url"))

    payload: Dict[str, Any] = {
        "company_name": record.get("company_name"),
        "company_email": record.get("company_email") or None,
        "company_info": record.get("company_info") or None,
        "company_size": record.get("company_size") or None,
        "website_url": record.get("website_url"),
        "hiring_needs": [h.strip() for h in (record.get("hiring_needs") or "").split(";") if h.strip()],
        "lead_source": record.get("lead_source") or None,
        "linkedin_link": record.get("linkedin_link") or None,
        "industry_name": record.get("industry_name") or None,
        "contact_name": record.get("contact_name") or None,
        "contact_email": record.get("contact_email") or None,
        "no_of_designations": _int_or_none(record.get("no_of_designations"), "no_of_designations"),
        "no_of_positions": _int_or_none(record.get("no_of_positions"), "no_of_positions"),
        "points_of_contact": contacts,
    }
    if record.get("stage"):
        payload["stage"] = record["stage"]
    if record.get("value"):
        try:
            payload["value"] = float(record["value"])
        except ValueError:
            raise ValidationError("value must be a number", field="value")
    if record.get("assigned_by"):
        payload["assigned_by"] = record["assigned_by"]
    return payload


# -------------------- Route --------------------
@router.post("/upload-csv", response_model=BulkUploadResponse)
async def upload_bulk_leads(
    file: UploadFile = File(...),
    sheet_name: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """
    Import leads from CSV or Excel. Rows are validated one by one; leads whose
    website already exists are skipped.
    """
    ext = validate_tabular_file(file)
    data = await read_capped(file)
    rows = parse_csv_bytes(data) if ext == ".csv" else parse_excel_bytes(data, sheet_name)
    records = rows_to_records(rows)

    errors: List[Dict[str, Any]] = []
    skipped = 0
    seen_urls = set()
    new_leads = []

    for line, record in enumerate(records, start=2):
        try:
            payload = record_to_payload(record)
            lead_in = LeadCreate(**payload)

            url = normalize_url(lead_in.website_url)
            if url in seen_urls or find_lead_by_website(db, url):
                skipped += 1
                continue

            lead = build_lead(db, lead_in.model_dump(), current_user)
            seen_urls.add(url)
            new_leads.append(lead)

        except ValidationError as e:
            errors.append({"line": line, "field": e.field, "reason": e.message})
        except PydanticValidationError as e:
            first = e.errors()[0]
            errors.append({
                "line": line,
                "field": ".".join(str(p) for p in first.get("loc", ())),
                "reason": first.get("msg"),
            })
        except HTTPException as e:
            errors.append({"line": line, "field": None, "reason": e.detail})

    try:
        db.add_all(new_leads)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Bulk lead insert failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error saving leads: {str(e)}")

    for lead in new_leads:
        record_activity(
            db,
            entity=ActivityEntity.lead,
            entity_id=lead.id,
            entity_name=lead.company_name,
            action=ActivityAction.create,
            changes=creation_changes(snapshot(lead)),
            lead_id=lead.id,
            user_id=current_user.employee_code,
        )

    logger.info(
        f"Bulk upload by {current_user.employee_code}: {len(new_leads)} created, "
        f"{skipped} duplicates, {len(errors)} errors"
    )
    return BulkUploadResponse(
        total_rows=len(records),
        successful_uploads=len(new_leads),
        skipped_duplicates=skipped,
        failed_uploads=len(errors),
        errors=errors,
        uploaded_leads=[l.id for l in new_leads],
    )
