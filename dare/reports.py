"""Spreadsheet exports and the programme summary report."""
from __future__ import annotations

import io
import logging
from collections import Counter
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy import select
from sqlalchemy.orm import Session

from dare import services, tracking
from dare.errors import ValidationError
from dare.models import BusinessProfile, BusinessTracking

log = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, key in the serialized record)
EXPORT_COLUMNS: dict[str, tuple[tuple[str, str], ...]] = {
    "youth": (
        ("ID", "id"), ("Participant Code", "participant_code"), ("Full Name", "full_name"),
        ("Gender", "gender"), ("Date of Birth", "date_of_birth"), ("District", "district"),
        ("Town", "town"), ("Phone", "phone_number"), ("Email", "email"),
        ("DARE Model", "dare_model"), ("Cohort", "cohort"), ("Core Skills", "core_skills"),
        ("Education", "highest_education_level"), ("Employment Status", "employment_status"),
        ("Training Status", "training_status"), ("Program Status", "program_status"),
        ("PWD Status", "pwd_status"), ("Refugee", "refugee_status"), ("IDP", "idp_status"),
        ("Languages", "languages_spoken"),
    ),
    "businesses": (
        ("ID", "id"), ("Business Name", "business_name"), ("District", "district"),
        ("DARE Model", "dare_model"), ("Sector", "sector"), ("Enterprise Type", "enterprise_type"),
        ("Enterprise Size", "enterprise_size"), ("Registration Status", "registration_status"),
        ("Start Date", "business_start_date"), ("Expected Weekly Revenue", "expected_weekly_revenue"),
        ("Expected Monthly Revenue", "expected_monthly_revenue"),
        ("Anticipated Monthly Expenditure", "anticipated_monthly_expenditure"),
        ("Expected Monthly Profit", "expected_monthly_profit"),
        ("Youth in Work", "total_youth_in_work_reported"), ("Refugee Youth", "youth_refugee_count"),
        ("IDP Youth", "youth_idp_count"), ("PLWD Youth", "youth_plwd_count"),
        ("Objectives", "business_objectives"),
    ),
    "tracking": (
        ("ID", "id"), ("Business ID", "business_id"), ("Business Name", "business_name"),
        ("Tracking Date", "tracking_date"), ("Period", "tracking_period"), ("Period Key", "period_key"),
        ("Actual Revenue", "actual_revenue"), ("Actual Expenditure", "actual_expenditure"),
        ("Actual Profit", "actual_profit"), ("Employees", "actual_employees"),
        ("Permanent", "permanent_employees"), ("Temporary", "temporary_employees"),
        ("Clients", "client_count"), ("Verified", "is_verified"), ("Challenges", "challenges"),
    ),
}
EXPORT_ENTITIES = tuple(EXPORT_COLUMNS)


def _records(session: Session, entity: str) -> list[dict[str, Any]]:
    if entity == "youth":
        return [services.youth_summary(y) for y in services.list_youth(session)]
    if entity == "businesses":
        return [services.business_summary(b) for b in services.list_businesses(session)]
    rows = session.execute(
        select(BusinessTracking, BusinessProfile.business_name)
        .join(BusinessProfile, BusinessTracking.business_id == BusinessProfile.id)
        .order_by(BusinessProfile.business_name, BusinessTracking.tracking_date, BusinessTracking.id)
    ).all()
    return [tracking.tracking_summary(rec) | {"business_name": name} for rec, name in rows]


def _cell(value: Any) -> Any:
    if isinstance(value, list):
        return "; ".join(str(v) for v in value)
    return value


def _style_sheet(worksheet: Worksheet) -> None:
    worksheet.freeze_panes = "A2"
    worksheet.auto_filter.ref = worksheet.dimensions

    header_fill = PatternFill(fill_type="solid", fgColor="1F4E78")
    header_font = Font(color="FFFFFF", bold=True)
    for cell in worksheet[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for col_cells in worksheet.columns:
        values = [str(cell.value) if cell.value is not None else "" for cell in col_cells]
        width = min(60, max(12, max(len(value) for value in values) + 2))
        worksheet.column_dimensions[col_cells[0].column_letter].width = width


def export_workbook(session: Session, entity: str) -> bytes:
    """Render one entity list as an .xlsx file with a styled header row."""
    if entity not in EXPORT_COLUMNS:
        raise ValidationError(
            f"Unknown export {entity!r}; expected one of {', '.join(EXPORT_ENTITIES)}",
            fields=["entity"],
        )
    columns = EXPORT_COLUMNS[entity]
    records = _records(session, entity)

    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = entity.capitalize()
    worksheet.append([header for header, _ in columns])
    for record in records:
        worksheet.append([_cell(record.get(key)) for _, key in columns])
    _style_sheet(worksheet)

    buffer = io.BytesIO()
    workbook.save(buffer)
    log.info("Exported %d %s row(s)", len(records), entity)
    return buffer.getvalue()


def _count(values) -> dict[str, int]:
    return dict(Counter(v for v in values if v))


def summary_report(session: Session) -> dict:
    """Programme-wide totals for youth, businesses and tracking."""
    youth = services.list_youth(session)
    businesses = services.list_businesses(session)
    records = session.execute(select(BusinessTracking)).scalars().all()
    return {
        "youth": {
            "total": len(youth),
            "by_district": _count(y.district for y in youth),
            "by_gender": _count(y.gender for y in youth),
            "by_dare_model": _count(y.dare_model for y in youth),
        },
        "businesses": {
            "total": len(businesses),
            "by_district": _count(b.district for b in businesses),
            "by_dare_model": _count(b.dare_model for b in businesses),
            "by_sector": _count(b.sector for b in businesses),
            "youth_in_work": sum(b.total_youth_in_work_reported or 0 for b in businesses),
            "refugee_youth": sum(b.youth_refugee_count or 0 for b in businesses),
            "idp_youth": sum(b.youth_idp_count or 0 for b in businesses),
            "plwd_youth": sum(b.youth_plwd_count or 0 for b in businesses),
        },
        "tracking": {
            "records": len(records),
            "verified": sum(1 for r in records if r.is_verified),
            "total_revenue": sum(r.actual_revenue or 0 for r in records),
            "total_profit": sum(r.actual_profit or 0 for r in records),
        },
    }
