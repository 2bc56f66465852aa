from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

import models
import schemas


# --- User CRUD ---
def get_user_by_id(db: Session, user_id: str):
    """Get a user by their primary key ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def upsert_user(db: Session, user: schemas.User):
    """Insert the user or refresh the profile fields the caller supplied.

    Fields left unset on ``user`` keep their stored value.
    """
    db_user = get_user_by_id(db, user.id)
    if db_user is None:
        db_user = models.User(id=user.id)
    for field in schemas.USER_PROFILE_FIELDS:
        if field in user.model_fields_set:
            setattr(db_user, field, getattr(user, field))
    db.add(db_user)
    db.flush()
    return db_user


# --- Job type CRUD ---
def get_job_type(db: Session, job_type_id: int):
    return db.query(models.JobType).filter(models.JobType.id == job_type_id).first()


def get_job_type_by_name(db: Session, name: str):
    return db.query(models.JobType).filter(models.JobType.name == name).first()


def get_job_types(db: Session):
    return db.query(models.JobType).order_by(models.JobType.name.asc()).all()


def create_job_type(db: Session, job_type: schemas.JobTypeCreate, created_at: datetime):
    db_job_type = models.JobType(name=job_type.name, created_at=created_at)
    db.add(db_job_type)
    db.flush()  # Assign ID without committing
    return db_job_type


# --- Job session CRUD ---
def create_job_session(
    db: Session, session: schemas.JobSessionCreate, user_id: str, created_at: datetime
):
    db_session = models.JobSession(
        user_id=user_id,
        job_type_id=session.job_type_id,
        duration_minutes=session.duration_minutes,
        earnings=session.earnings,
        expenses=session.expenses,
        created_at=created_at,
    )
    db.add(db_session)
    db.flush()
    return db_session


def _sessions_with_details_query(db: Session, user_id: Optional[str] = None):
    query = (
        db.query(models.JobSession, models.JobType, models.User)
        .join(models.JobType, models.JobSession.job_type_id == models.JobType.id)
        .outerjoin(models.User, models.JobSession.user_id == models.User.id)
    )
    if user_id is not None:
        query = query.filter(models.JobSession.user_id == user_id)
    return query.order_by(models.JobSession.created_at.desc(), models.JobSession.id.asc())


def get_job_sessions_with_details(
    db: Session,
    user_id: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Tuple[models.JobSession, models.JobType, Optional[models.User]]]:
    """Sessions joined with their job type and owner, newest first."""
    query = _sessions_with_details_query(db, user_id)
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def count_job_sessions(db: Session, user_id: Optional[str] = None) -> int:
    query = db.query(func.count(models.JobSession.id))
    if user_id is not None:
        query = query.filter(models.JobSession.user_id == user_id)
    return query.scalar() or 0


def get_job_sessions_in_id_order(db: Session, user_id: Optional[str] = None):
    query = db.query(models.JobSession)
    if user_id is not None:
        query = query.filter(models.JobSession.user_id == user_id)
    return query.order_by(models.JobSession.id.asc()).all()
