from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from .analytics import COLUMNS
from .models import Entry


def years_before(today: date, years: int) -> date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return today.replace(year=today.year - years, day=28)


def apply_filters(
    query: Query,
    gender: Optional[str] = None,
    diagnosis: Optional[str] = None,
    treatment: Optional[str] = None,
) -> Query:
    if gender:
        query = query.filter(Entry.gender == gender)
    if diagnosis:
        query = query.filter(Entry.diagnosis.ilike(f"%{diagnosis}%"))
    if treatment:
        query = query.filter(Entry.treatment.ilike(f"%{treatment}%"))
    return query


def apply_age_bounds(
    query: Query,
    today: date,
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
) -> Query:
    """Translate an age range into date-of-birth bounds relative to ``today``."""
    if min_age is not None:
        query = query.filter(Entry.date_of_birth <= years_before(today, min_age))
    if max_age is not None:
        query = query.filter(Entry.date_of_birth > years_before(today, max_age + 1))
    return query


def apply_weight_bounds(
    query: Query,
    min_weight: Optional[float] = None,
    max_weight: Optional[float] = None,
) -> Query:
    if min_weight is not None:
        query = query.filter(Entry.weight >= min_weight)
    if max_weight is not None:
        query = query.filter(Entry.weight <= max_weight)
    return query


def apply_search(query: Query, search: Optional[str]) -> Query:
    if not search:
        return query
    pattern = f"%{search}%"
    return query.filter(
        or_(
            Entry.first_name.ilike(pattern),
            Entry.middle_name.ilike(pattern),
            Entry.surname.ilike(pattern),
            Entry.phone_number.ilike(pattern),
            Entry.occupation.ilike(pattern),
        )
    )


def analytics_rows(db: Session, **filters: Any) -> List[Dict[str, Any]]:
    """Rows for the analytics rollup, in a stable order."""
    columns = [getattr(Entry, name) for name in COLUMNS]
    rows = apply_filters(db.query(*columns), **filters).order_by(Entry.id.asc()).all()
    return [dict(r._mapping) for r in rows]
