import logging
import math
from typing import Dict, Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..auth import get_password_hash, require_role
from ..database import get_db
from ..models import Entry, User, USER_REFERENCE_COLUMNS
from ..policy import Role
from ..schemas import Pagination, UserCreate, UserListResponse, UserResponse, UserUpdate

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["Users"])

admin_only = require_role(Role.ADMIN)


def _entry_counts(db: Session, user_ids: Iterable[int]) -> Dict[int, int]:
    ids = list(user_ids)
    if not ids:
        return {}
    rows = (
        db.query(Entry.created_by_id, func.count(Entry.id))
        .filter(Entry.created_by_id.in_(ids))
        .group_by(Entry.created_by_id)
        .all()
    )
    return {uid: int(n) for uid, n in rows}


def _user_response(user: User, entry_count: int = 0) -> UserResponse:
    return UserResponse.model_validate(user).model_copy(update={"entry_count": entry_count})


def _get_user_or_404(db: Session, user_id: int) -> User:
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return u


def _email_taken(db: Session, email: str) -> bool:
    return db.query(User.id).filter(func.lower(User.email) == email.lower()).first() is not None


@router.get("", response_model=UserListResponse)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Email or name"),
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    query = db.query(User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    try:
        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        counts = _entry_counts(db, (u.id for u in users))
    except SQLAlchemyError:
        log.exception("Failed to list users")
        raise HTTPException(status_code=500, detail="Failed to fetch users.")

    return UserListResponse(
        users=[_user_response(u, counts.get(u.id, 0)) for u in users],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    if _email_taken(db, data.email):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    u = User(
        email=data.email,
        password_hash=get_password_hash(data.password),
        name=data.name or None,
        role=data.role.value,
    )
    try:
        db.add(u)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="User with this email already exists")
    except SQLAlchemyError:
        db.rollback()
        log.exception("Failed to create user")
        raise HTTPException(status_code=500, detail="Failed to create user.")
    db.refresh(u)
    log.info("User %s (%s) created by admin %s", u.id, u.role, admin.id)
    return _user_response(u)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    u = _get_user_or_404(db, user_id)
    return _user_response(u, _entry_counts(db, [u.id]).get(u.id, 0))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    u = _get_user_or_404(db, user_id)

    if data.email and data.email.lower() != u.email.lower() and _email_taken(db, data.email):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    if data.email:
        u.email = data.email
    if data.password:
        u.password_hash = get_password_hash(data.password)
    if "name" in data.model_fields_set:
        u.name = data.name or None
    if data.role is not None:
        u.role = data.role.value

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="User with this email already exists")
    except SQLAlchemyError:
        db.rollback()
        log.exception("Failed to update user %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to update user.")
    db.refresh(u)
    return _user_response(u, _entry_counts(db, [u.id]).get(u.id, 0))


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    u = _get_user_or_404(db, user_id)

    try:
        # entries outlive their authors; drop the references first
        for column in USER_REFERENCE_COLUMNS:
            db.query(Entry).filter(getattr(Entry, column) == user_id).update(
                {column: None}, synchronize_session=False
            )
        db.delete(u)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.exception("Failed to delete user %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to delete user.")
    log.info("User %s deleted by admin %s", user_id, admin.id)
    return {"message": "User deleted successfully"}
