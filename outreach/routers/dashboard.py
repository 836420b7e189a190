import io
import logging
from datetime import date
from typing import Literal, Optional

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..analytics import build_analytics
from ..auth import get_current_user
from ..database import get_db
from ..models import Entry, User
from ..queries import analytics_rows, apply_age_bounds, apply_filters, apply_search, apply_weight_bounds

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entries", tags=["Dashboard"])

Gender = Optional[Literal["male", "female"]]


def _float_or_none(value) -> Optional[float]:
    return float(value) if value is not None else None


@router.get("/stats")
def get_stats(
    gender: Gender = Query(None),
    diagnosis: Optional[str] = Query(None),
    treatment: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Summary counts and averages, aggregated in the database."""
    filters = {"gender": gender, "diagnosis": diagnosis, "treatment": treatment}

    try:
        total = apply_filters(db.query(func.count(Entry.id)), **filters).scalar() or 0
        gender_rows = (
            apply_filters(db.query(Entry.gender, func.count(Entry.id)), **filters)
            .group_by(Entry.gender)
            .order_by(Entry.gender.asc())
            .all()
        )
        diag_rows = (
            apply_filters(db.query(Entry.diagnosis, func.count(Entry.id)), **filters)
            .filter(Entry.diagnosis.isnot(None))
            .group_by(Entry.diagnosis)
            .order_by(Entry.diagnosis.asc())
            .all()
        )
        treat_rows = (
            apply_filters(db.query(Entry.treatment, func.count(Entry.id)), **filters)
            .filter(Entry.treatment.isnot(None))
            .group_by(Entry.treatment)
            .order_by(Entry.treatment.asc())
            .all()
        )
        avg_weight = apply_filters(db.query(func.avg(Entry.weight)), **filters).scalar()
        avg_temp = apply_filters(db.query(func.avg(Entry.temp)), **filters).scalar()
    except SQLAlchemyError:
        log.exception("Failed to compute stats")
        raise HTTPException(status_code=500, detail="Failed to load stats.")

    return {
        "totalEntries": int(total),
        "genderDistribution": [{"gender": g, "count": int(c)} for g, c in gender_rows],
        "diagnosisDistribution": [{"diagnosis": d, "count": int(c)} for d, c in diag_rows],
        "treatmentDistribution": [{"treatment": t, "count": int(c)} for t, c in treat_rows],
        "averageWeight": _float_or_none(avg_weight),
        "averageTemp": _float_or_none(avg_temp),
    }


@router.get("/analytics")
def get_analytics(
    gender: Gender = Query(None),
    diagnosis: Optional[str] = Query(None),
    treatment: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        rows = analytics_rows(db, gender=gender, diagnosis=diagnosis, treatment=treatment)
    except SQLAlchemyError:
        log.exception("Failed to load entries for analytics")
        raise HTTPException(status_code=500, detail="Failed to load analytics.")
    return build_analytics(rows, date.today())


@router.get("/export.xlsx")
def export_excel(
    gender: Gender = Query(None),
    diagnosis: Optional[str] = Query(None),
    treatment: Optional[str] = Query(None),
    min_age: Optional[int] = Query(None, alias="minAge", ge=0),
    max_age: Optional[int] = Query(None, alias="maxAge", ge=0),
    min_weight: Optional[float] = Query(None, alias="minWeight"),
    max_weight: Optional[float] = Query(None, alias="maxWeight"),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Filtered entries as a spreadsheet, with the same filters as the listing."""
    query = apply_filters(db.query(Entry), gender=gender, diagnosis=diagnosis, treatment=treatment)
    query = apply_age_bounds(query, date.today(), min_age=min_age, max_age=max_age)
    query = apply_weight_bounds(query, min_weight=min_weight, max_weight=max_weight)
    query = apply_search(query, search)
    try:
        rows = query.order_by(Entry.created_at.desc(), Entry.id.desc()).all()
    except SQLAlchemyError:
        log.exception("Failed to load entries for export")
        raise HTTPException(status_code=500, detail="Failed to fetch entries for export.")

    data = [{
        "ID": r.id,
        "First Name": r.first_name,
        "Middle Name": r.middle_name,
        "Surname": r.surname,
        "Gender": r.gender,
        "Marital Status": r.marital_status,
        "Religion": r.religion,
        "Date of Birth": r.date_of_birth.isoformat() if r.date_of_birth else None,
        "Phone Number": r.phone_number,
        "Occupation": r.occupation,
        "BP": r.bp,
        "Temperature": r.temp,
        "Weight": r.weight,
        "Diagnosis": r.diagnosis,
        "Treatment": r.treatment,
    } for r in rows]

    output = io.BytesIO()
    try:
        df = pd.DataFrame(data)
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Entries")
        output.seek(0)
    except (ValueError, OSError):
        log.exception("Failed to build spreadsheet")
        raise HTTPException(status_code=500, detail="Failed to build the Excel file.")

    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=entries.xlsx"},
    )
