import logging
import math
from datetime import date
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..auth import get_current_user
from ..database import get_db
from ..merge import merge_entry, snapshot
from ..models import Entry, User
from ..queries import apply_age_bounds, apply_filters, apply_search, apply_weight_bounds
from ..schemas import EntryListResponse, EntryResponse, Pagination

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entries", tags=["Entries"])


def _load_entry(db: Session, entry_id: Any) -> Entry:
    try:
        pk = int(entry_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=404, detail="Entry not found")
    entry = db.get(Entry, pk)
    if not entry:
        raise HTTPException(status_code=404, detail="Entry not found")
    return entry


@router.post("", response_model=EntryResponse)
def save_entry(
    response: Response,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create an entry, or update one when the body carries its ``id``."""
    entry_id = payload.get("id")
    if entry_id not in (None, ""):
        entry = _load_entry(db, entry_id)
        result = merge_entry(snapshot(entry), payload, user.role, user.id)
        for key, value in result.changes.items():
            setattr(entry, key, value)
        response.status_code = status.HTTP_200_OK
    else:
        result = merge_entry(None, payload, user.role, user.id)
        entry = Entry(**result.changes)
        db.add(entry)
        response.status_code = status.HTTP_201_CREATED

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("Failed to save entry")
        raise HTTPException(status_code=500, detail="Failed to save entry.")
    db.refresh(entry)

    log.info(
        "Entry %s %s by user %s (groups: %s)",
        entry.id,
        "created" if response.status_code == status.HTTP_201_CREATED else "updated",
        user.id,
        ", ".join(g.value for g in result.applied),
    )
    if result.skipped:
        log.info("Entry %s: skipped %s", entry.id, result.skipped)
    return EntryResponse.model_validate(entry)


@router.get("", response_model=EntryListResponse)
def list_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    gender: Optional[Literal["male", "female"]] = Query(None),
    diagnosis: Optional[str] = Query(None),
    treatment: Optional[str] = Query(None),
    min_age: Optional[int] = Query(None, alias="minAge", ge=0),
    max_age: Optional[int] = Query(None, alias="maxAge", ge=0),
    min_weight: Optional[float] = Query(None, alias="minWeight"),
    max_weight: Optional[float] = Query(None, alias="maxWeight"),
    search: Optional[str] = Query(None, description="Name, phone number or occupation"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    query = apply_filters(db.query(Entry), gender=gender, diagnosis=diagnosis, treatment=treatment)
    query = apply_age_bounds(query, date.today(), min_age=min_age, max_age=max_age)
    query = apply_weight_bounds(query, min_weight=min_weight, max_weight=max_weight)
    query = apply_search(query, search)

    try:
        total = query.count()
        entries = (
            query.order_by(Entry.created_at.desc(), Entry.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        items = [EntryResponse.model_validate(e) for e in entries]
    except SQLAlchemyError:
        log.exception("Failed to list entries")
        raise HTTPException(status_code=500, detail="Failed to fetch entries.")

    return EntryListResponse(
        entries=items,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.get("/{entry_id:int}", response_model=EntryResponse)
def get_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return EntryResponse.model_validate(_load_entry(db, entry_id))
