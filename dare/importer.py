from __future__ import annotations

import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

import openpyxl
from sqlalchemy import select
from sqlalchemy.orm import Session

from dare import services
from dare.errors import ValidationError
from dare.models import YouthProfile
from dare.schemas import ImportResult, YouthCreate, validate

log = logging.getLogger(__name__)


def _s(value: object) -> str:
    """Safely coerce cell value to stripped string."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _i(value: object) -> int | None:
    """Safely coerce cell value to int, None if missing or unparseable."""
    if value is None or _s(value) == "":
        return None
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None


def _b(value: object) -> bool:
    """Safely coerce cell value to bool."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "y")


def _d(value: object) -> date | None:
    """Safely coerce cell value to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _s(value)
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------

# normalized header -> field name
_HEADERS = {
    "participant code": "participant_code", "participant id": "participant_code",
    "full name": "full_name", "name": "full_name",
    "first name": "first_name", "middle name": "middle_name", "last name": "last_name",
    "surname": "last_name", "preferred name": "preferred_name",
    "gender": "gender", "sex": "gender",
    "date of birth": "date_of_birth", "dob": "date_of_birth",
    "yob": "year_of_birth", "year of birth": "year_of_birth",
    "marital status": "marital_status",
    "children": "children_count", "number of children": "children_count",
    "national id": "national_id", "ghana card": "national_id", "ghana card number": "national_id",
    "pwd status": "pwd_status", "disability": "pwd_status",
    "district": "district", "town": "town", "community": "town",
    "home address": "home_address", "address": "home_address",
    "phone": "phone_number", "phone number": "phone_number", "contact": "phone_number",
    "email": "email",
    "core skills": "core_skills", "skills": "core_skills", "skill level": "skill_level",
    "education": "highest_education_level", "highest education level": "highest_education_level",
    "languages": "languages_spoken", "languages spoken": "languages_spoken",
    "business interest": "business_interest", "employment status": "employment_status",
    "training status": "training_status", "program status": "program_status",
    "transition status": "transition_status", "cohort": "cohort",
    "dare model": "dare_model", "refugee": "refugee_status", "refugee status": "refugee_status",
    "idp": "idp_status", "idp status": "idp_status",
}

_INT_FIELDS = {"children_count", "year_of_birth"}
_BOOL_FIELDS = {"refugee_status", "idp_status"}
_DATE_FIELDS = {"date_of_birth"}

# Spellings found in program spreadsheets for the DARE models.
DARE_MODEL_ALIASES = {
    "collaborative": "Collaborative",
    "makerspace": "MakerSpace", "maker space": "MakerSpace",
    "madam anchor": "Madam Anchor", "job anchor": "Madam Anchor",
}
_GENDER_ALIASES = {"m": "Male", "male": "Male", "f": "Female", "female": "Female", "other": "Other"}

# Participant codes look like D001XXXXXXX; the three digits name the district.
_CODE_DISTRICTS = {"001": "Bekwai", "002": "Lower Manya Krobo", "003": "Gushegu"}
_CODE_RE = re.compile(r"^D(\d{3})")


def _normalize_header(value: object) -> str:
    return re.sub(r"[\s_]+", " ", _s(value).lower())


def _map_headers(header_row: tuple) -> dict[int, str]:
    mapping: dict[int, str] = {}
    for idx, cell in enumerate(header_row):
        field = _HEADERS.get(_normalize_header(cell))
        if field and field not in mapping.values():
            mapping[idx] = field
    return mapping


def parse_row(row: tuple, columns: dict[int, str]) -> dict[str, Any]:
    """Turn one sheet row into a youth-profile payload (blank cells dropped)."""
    data: dict[str, Any] = {}
    for idx, field in columns.items():
        raw = row[idx] if idx < len(row) else None
        if field in _INT_FIELDS:
            value: Any = _i(raw)
        elif field in _BOOL_FIELDS:
            value = _b(raw) if _s(raw) else None
        elif field in _DATE_FIELDS:
            value = _d(raw)
        else:
            value = _s(raw) or None
        if value is not None:
            data[field] = value

    year = data.pop("year_of_birth", None)
    if "date_of_birth" not in data and year and 1900 <= year <= date.today().year:
        data["date_of_birth"] = date(year, 1, 1)
    if "dare_model" in data:
        data["dare_model"] = DARE_MODEL_ALIASES.get(data["dare_model"].lower(), data["dare_model"])
    if "gender" in data:
        data["gender"] = _GENDER_ALIASES.get(data["gender"].lower(), data["gender"])
    if "district" not in data and data.get("participant_code"):
        match = _CODE_RE.match(data["participant_code"])
        if match and match.group(1) in _CODE_DISTRICTS:
            data["district"] = _CODE_DISTRICTS[match.group(1)]
    return data


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _find_existing(
    data: dict[str, Any], by_code: dict[str, YouthProfile], by_national_id: dict[str, YouthProfile],
) -> YouthProfile | None:
    code, national_id = data.get("participant_code"), data.get("national_id")
    if code and code in by_code:
        return by_code[code]
    if national_id and national_id in by_national_id:
        return by_national_id[national_id]
    return None


def import_xlsx(file_path: str | Path, session: Session) -> ImportResult:
    """Import youth profiles from the first sheet of an XLSX workbook.

    The first row holds headers. Existing profiles (same participant code or
    national id) are updated with the non-blank cells; rows that fail
    validation are skipped and reported. Caller must commit.
    """
    file_path = Path(file_path)
    wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
    try:
        rows = list(wb.worksheets[0].iter_rows(values_only=True)) if wb.worksheets else []
    finally:
        wb.close()
    if not rows:
        return ImportResult(total_imported=0, duplicates_updated=0, skipped=0, errors=["Workbook is empty"])

    columns = _map_headers(rows[0])
    if "full_name" not in columns.values() and not {"first_name", "last_name"} <= set(columns.values()):
        return ImportResult(
            total_imported=0, duplicates_updated=0, skipped=len(rows) - 1,
            errors=["No name column found (expected 'Full Name' or 'First Name' + 'Last Name')"],
        )

    existing = session.execute(select(YouthProfile).where(YouthProfile.is_deleted.is_(False))).scalars().all()
    by_code = {y.participant_code: y for y in existing if y.participant_code}
    by_national_id = {y.national_id: y for y in existing if y.national_id}

    new_count = updated_count = skipped = 0
    errors: list[str] = []
    for line, row in enumerate(rows[1:], start=2):
        if not row or all(_s(cell) == "" for cell in row):
            continue
        data = parse_row(row, columns)
        try:
            payload = validate(YouthCreate, data)
        except ValidationError as exc:
            skipped += 1
            errors.append(f"Row {line}: {exc.message}")
            continue
        clean = payload.model_dump(exclude_unset=True)
        clean["full_name"] = payload.full_name

        youth = _find_existing(clean, by_code, by_national_id)
        if youth is not None:
            services.update_youth(session, youth, clean)
            updated_count += 1
        else:
            youth = services.create_youth(session, clean)
            new_count += 1
        if youth.participant_code:
            by_code[youth.participant_code] = youth
        if youth.national_id:
            by_national_id[youth.national_id] = youth

    log.info("Youth import: %d new, %d updated, %d skipped", new_count, updated_count, skipped)
    return ImportResult(
        total_imported=new_count + updated_count,
        duplicates_updated=updated_count,
        skipped=skipped,
        errors=errors,
    )
