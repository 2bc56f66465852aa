"""Storage backends for job types and job sessions.

``Storage`` is the one contract both backends satisfy. Validation, duplicate
and reference checks, seeding and the derived analytics live on the base
class; subclasses only implement the primitive reads and writes. Pick an
implementation with ``create_storage()``, which follows ``settings``.
"""
from __future__ import annotations

import abc
from contextlib import contextmanager
from functools import lru_cache
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, List, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import crud
import logic
import schemas
from database import build_engine, build_session_factory, create_db_and_tables
from errors import ConflictError, NotFoundError, StorageError, StorageUnavailable, ValidationError
from settings import Settings, get_settings

logger = structlog.get_logger(__name__)

DEFAULT_JOB_TYPES = (
    "Breaking Rocks",
    "Growing Weed",
    "Cocaine Making",
    "Trucking",
    "Boosting",
)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_window(limit: Optional[int], offset: int) -> None:
    errors = []
    if limit is not None and limit < 1:
        errors.append({"field": "limit", "message": "limit must be at least 1"})
    if offset < 0:
        errors.append({"field": "offset", "message": "offset must not be negative"})
    if errors:
        raise ValidationError(errors)


def email_taken(user: schemas.User) -> ValidationError:
    """Error for an upsert whose email already belongs to a different user id."""
    logger.info("Rejected user email already on file", user_id=user.id)
    return ValidationError.for_field("email", "Email is already registered to another user")


class Storage(abc.ABC):
    """Read/write contract shared by the relational and local backends."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock: Clock = clock or utcnow

    # --- lifecycle ---
    def initialize(self) -> None:
        """Prepare the backing store and seed the default job types. Idempotent."""
        self.prepare()
        seed_default_job_types(self)

    @abc.abstractmethod
    def prepare(self) -> None:
        """Create whatever the backend needs before the first read or write."""

    # --- users (external identity) ---
    @abc.abstractmethod
    def get_user(self, user_id: str) -> Optional[schemas.User]: ...

    @abc.abstractmethod
    def upsert_user(self, user: schemas.User) -> schemas.User: ...

    # --- job types ---
    @abc.abstractmethod
    def get_job_type(self, job_type_id: int) -> Optional[schemas.JobType]: ...

    @abc.abstractmethod
    def get_job_type_by_name(self, name: str) -> Optional[schemas.JobType]: ...

    @abc.abstractmethod
    def list_job_types(self) -> List[schemas.JobType]:
        """All job types sorted by name ascending."""

    @abc.abstractmethod
    def _insert_job_type(self, job_type: schemas.JobTypeCreate) -> schemas.JobType: ...

    def create_job_type(self, name: Any) -> schemas.JobType:
        job_type = schemas.parse(schemas.JobTypeCreate, {"name": name})
        if self.get_job_type_by_name(job_type.name) is not None:
            logger.info("Rejected duplicate job type", name=job_type.name)
            raise ConflictError()
        created = self._insert_job_type(job_type)
        logger.info("Created job type", job_type_id=created.id, name=created.name)
        return created

    # --- job sessions ---
    @abc.abstractmethod
    def _insert_job_session(
        self, session: schemas.JobSessionCreate, user_id: str
    ) -> schemas.JobSession: ...

    def create_job_session(self, session: Any, user_id: str) -> schemas.JobSession:
        """Validate and store one session for ``user_id``.

        ``session`` may be a ``JobSessionCreate`` or a mapping using either
        snake_case or camelCase keys.
        """
        data = schemas.parse(schemas.JobSessionCreate, session)
        if not user_id:
            raise ValidationError.for_field("userId", "userId is required")
        if self.get_job_type(data.job_type_id) is None:
            raise NotFoundError(f"Job type {data.job_type_id} not found")
        created = self._insert_job_session(data, user_id)
        logger.info(
            "Created job session",
            session_id=created.id,
            job_type_id=created.job_type_id,
            user_id=user_id,
        )
        return created

    @abc.abstractmethod
    def _select_job_sessions(
        self, user_id: Optional[str], limit: Optional[int], offset: int
    ) -> List[schemas.JobSessionWithDetails]: ...

    def list_job_sessions(
        self, user_id: Optional[str] = None, limit: Optional[int] = 50, offset: int = 0
    ) -> List[schemas.JobSessionWithDetails]:
        """Sessions newest first (ties by id ascending); ``limit=None`` means all."""
        check_window(limit, offset)
        return self._select_job_sessions(user_id, limit, offset)

    @abc.abstractmethod
    def count_job_sessions(self, user_id: Optional[str] = None) -> int: ...

    def list_all_job_sessions_for_export(self) -> List[schemas.JobSessionWithDetails]:
        return self._select_job_sessions(None, None, 0)

    @abc.abstractmethod
    def snapshot_job_sessions(self, user_id: Optional[str] = None) -> List[schemas.JobSession]:
        """Every session in id order, the input the aggregator works from."""

    # --- derived views ---
    def get_job_profitability(self) -> List[schemas.JobProfitability]:
        return logic.compute_profitability(self.snapshot_job_sessions(), self.list_job_types())

    def get_user_stats(self, user_id: str) -> schemas.UserStats:
        return logic.compute_user_stats(self.snapshot_job_sessions(user_id))

    def get_job_session_page(
        self, user_id: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> schemas.JobSessionPage:
        if page < 1:
            raise ValidationError.for_field("page", "page must be at least 1")
        check_window(limit, 0)
        offset = (page - 1) * limit
        sessions = self.list_job_sessions(user_id, limit=limit, offset=offset)
        total = self.count_job_sessions(user_id)
        return logic.paginate(sessions, total, limit, offset)


def seed_default_job_types(storage: Storage) -> List[schemas.JobType]:
    """Insert each default job type that is not already present by name."""
    created = []
    for name in DEFAULT_JOB_TYPES:
        if storage.get_job_type_by_name(name) is not None:
            continue
        try:
            created.append(storage.create_job_type(name))
        except ConflictError:
            # Another process seeded it between our check and insert
            logger.info("Default job type already present", name=name)
    if created:
        logger.info("Seeded default job types", count=len(created))
    return created


# ---------------------------------------------------------------------------
# Relational backend
# ---------------------------------------------------------------------------
def _session_with_details(row) -> schemas.JobSessionWithDetails:
    db_session, db_job_type, db_user = row
    return schemas.JobSessionWithDetails(
        **schemas.JobSession.model_validate(db_session).model_dump(),
        job_type=schemas.JobType.model_validate(db_job_type),
        user=schemas.UserSummary.model_validate(db_user) if db_user is not None else None,
    )


class DatabaseStorage(Storage):
    """Multi-user backend on SQLAlchemy; one transaction per write."""

    def __init__(self, engine: Engine, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self.engine = engine
        self.SessionLocal = build_session_factory(engine)

    @contextmanager
    def _db(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except StorageError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Database operation failed", exc_info=exc)
            raise StorageUnavailable(str(exc)) from exc
        finally:
            db.close()

    def prepare(self) -> None:
        try:
            create_db_and_tables(self.engine)
        except SQLAlchemyError as exc:
            raise StorageUnavailable(str(exc)) from exc

    def get_user(self, user_id: str) -> Optional[schemas.User]:
        with self._db() as db:
            db_user = crud.get_user_by_id(db, user_id)
            return schemas.User.model_validate(db_user) if db_user else None

    def upsert_user(self, user: schemas.User) -> schemas.User:
        with self._db() as db:
            if user.email and "email" in user.model_fields_set:
                owner = crud.get_user_by_email(db, user.email)
                if owner is not None and owner.id != user.id:
                    raise email_taken(user)
            try:
                db_user = crud.upsert_user(db, user)
            except IntegrityError as exc:
                raise email_taken(user) from exc
            return schemas.User.model_validate(db_user)

    def get_job_type(self, job_type_id: int) -> Optional[schemas.JobType]:
        with self._db() as db:
            db_job_type = crud.get_job_type(db, job_type_id)
            return schemas.JobType.model_validate(db_job_type) if db_job_type else None

    def get_job_type_by_name(self, name: str) -> Optional[schemas.JobType]:
        with self._db() as db:
            db_job_type = crud.get_job_type_by_name(db, name)
            return schemas.JobType.model_validate(db_job_type) if db_job_type else None

    def list_job_types(self) -> List[schemas.JobType]:
        with self._db() as db:
            return [schemas.JobType.model_validate(jt) for jt in crud.get_job_types(db)]

    def _insert_job_type(self, job_type: schemas.JobTypeCreate) -> schemas.JobType:
        with self._db() as db:
            try:
                db_job_type = crud.create_job_type(db, job_type, created_at=self.clock())
            except IntegrityError as exc:
                # Lost a race with a concurrent insert of the same name
                raise ConflictError() from exc
            return schemas.JobType.model_validate(db_job_type)

    def _insert_job_session(
        self, session: schemas.JobSessionCreate, user_id: str
    ) -> schemas.JobSession:
        with self._db() as db:
            if crud.get_user_by_id(db, user_id) is None:
                # Owner rows normally come from the auth layer; keep the FK valid regardless
                crud.upsert_user(db, schemas.User(id=user_id))
            db_session = crud.create_job_session(db, session, user_id, created_at=self.clock())
            return schemas.JobSession.model_validate(db_session)

    def _select_job_sessions(
        self, user_id: Optional[str], limit: Optional[int], offset: int
    ) -> List[schemas.JobSessionWithDetails]:
        with self._db() as db:
            rows = crud.get_job_sessions_with_details(db, user_id=user_id, limit=limit, offset=offset)
            return [_session_with_details(row) for row in rows]

    def count_job_sessions(self, user_id: Optional[str] = None) -> int:
        with self._db() as db:
            return crud.count_job_sessions(db, user_id)

    def snapshot_job_sessions(self, user_id: Optional[str] = None) -> List[schemas.JobSession]:
        with self._db() as db:
            return [
                schemas.JobSession.model_validate(s)
                for s in crud.get_job_sessions_in_id_order(db, user_id)
            ]


def create_storage(settings: Optional[Settings] = None) -> Storage:
    """Build and initialize the backend selected by ``settings.storage_backend``."""
    settings = settings or get_settings()
    if settings.storage_backend == "local":
        from local_storage import LocalStorage, open_key_value_store

        storage: Storage = LocalStorage(open_key_value_store(settings.local_storage_path))
    else:
        storage = DatabaseStorage(build_engine(settings.database_url))
    logger.info("Initializing storage backend", backend=settings.storage_backend)
    storage.initialize()
    return storage


@lru_cache()
def get_storage() -> Storage:
    """Process-wide backend, built on first use. FastAPI dependency."""
    return create_storage()
