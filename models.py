from datetime import datetime, timezone

from sqlalchemy.orm import relationship
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime
from sqlalchemy.types import TypeDecorator
from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every dialect.

    SQLite drops tzinfo on storage, so naive values read back are tagged UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class User(Base):
    __tablename__ = "users"

    # External identity (populated by the auth collaborator), not allocated here
    id = Column(String, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    created_at = Column(UTCDateTime(), default=_utcnow)
    updated_at = Column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)

    job_sessions = relationship("JobSession", back_populates="user")


class JobType(Base):
    __tablename__ = "job_types"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(UTCDateTime(), default=_utcnow)

    job_sessions = relationship("JobSession", back_populates="job_type")


class JobSession(Base):
    __tablename__ = "job_sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    job_type_id = Column(Integer, ForeignKey("job_types.id"), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    earnings = Column(Numeric(10, 2), nullable=False)
    expenses = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(UTCDateTime(), default=_utcnow, index=True)

    user = relationship("User", back_populates="job_sessions")
    job_type = relationship("JobType", back_populates="job_sessions")
