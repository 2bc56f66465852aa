"""Single-user storage backend on a local key-value store.

The layout mirrors what the static dashboard kept in browser storage: four
JSON entries holding the job type collection, the session collection and the
two next-id counters. Every mutation rewrites a collection together with its
counter in one ``set_many`` call, so a reader never sees one without the
other.
"""
from __future__ import annotations

import abc
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Type, TypeVar

import pydantic
import structlog

import schemas
from errors import StorageUnavailable
from storage import Clock, Storage, email_taken

logger = structlog.get_logger(__name__)

JOB_TYPES_KEY = "fivem_job_types"
JOB_SESSIONS_KEY = "fivem_job_sessions"
NEXT_JOB_TYPE_ID_KEY = "fivem_next_job_type_id"
NEXT_SESSION_ID_KEY = "fivem_next_session_id"

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class KeyValueStore(abc.ABC):
    """String-to-string store, the shape of ``window.localStorage``."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abc.abstractmethod
    def set_many(self, items: Mapping[str, str]) -> None:
        """Write all ``items`` at once; either every key lands or none does."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local, ephemeral store for demos and tests."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        self.data.update(items)


class JsonFileKeyValueStore(KeyValueStore):
    """All entries in one JSON object on disk, replaced atomically on write."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageUnavailable(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailable(f"Unexpected content in {self.path}")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        data = self._read()
        data.update(items)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent, delete=False, suffix=".tmp"
            ) as tmp:
                tmp_path = tmp.name
                json.dump(data, tmp)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageUnavailable(f"Cannot write {self.path}: {exc}") from exc


def open_key_value_store(path: Optional[str]) -> KeyValueStore:
    if path:
        return JsonFileKeyValueStore(path)
    return MemoryKeyValueStore()


class LocalStorage(Storage):
    """Single-process backend. Concurrent writers are not supported (last write wins)."""

    def __init__(self, store: Optional[KeyValueStore] = None, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self.store = store if store is not None else MemoryKeyValueStore()
        # External identity is not persisted here; only kept for name lookups
        self._users: Dict[str, schemas.User] = {}

    # --- raw entry access ---
    def _load(self, key: str, model: Type[ModelT]) -> List[ModelT]:
        raw = self.store.get(key)
        if raw is None:
            return []
        try:
            return [model.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, pydantic.ValidationError) as exc:
            raise StorageUnavailable(f"Corrupt entry {key!r}: {exc}") from exc

    def _next_id(self, key: str) -> int:
        raw = self.store.get(key)
        try:
            return int(json.loads(raw)) if raw is not None else 1
        except (json.JSONDecodeError, TypeError, ValueError) as exc:
            raise StorageUnavailable(f"Corrupt counter {key!r}: {exc}") from exc

    @staticmethod
    def _dump(items: List[pydantic.BaseModel]) -> str:
        return json.dumps([item.model_dump(mode="json", by_alias=True) for item in items])

    def prepare(self) -> None:
        missing = {}
        for key, initial in (
            (JOB_TYPES_KEY, "[]"),
            (NEXT_JOB_TYPE_ID_KEY, "1"),
            (JOB_SESSIONS_KEY, "[]"),
            (NEXT_SESSION_ID_KEY, "1"),
        ):
            # An existing counter is kept even if its collection is gone, so ids are never reused
            if self.store.get(key) is None:
                missing[key] = initial
        if missing:
            self.store.set_many(missing)

    # --- users ---
    def get_user(self, user_id: str) -> Optional[schemas.User]:
        return self._users.get(user_id)

    def upsert_user(self, user: schemas.User) -> schemas.User:
        if user.email and "email" in user.model_fields_set:
            if any(u.email == user.email and u.id != user.id for u in self._users.values()):
                raise email_taken(user)
        now = self.clock()
        existing = self._users.get(user.id) or schemas.User(id=user.id, created_at=now)
        supplied = {f: getattr(user, f) for f in schemas.USER_PROFILE_FIELDS if f in user.model_fields_set}
        stored = existing.model_copy(update={**supplied, "updated_at": now})
        self._users[user.id] = stored
        return stored

    # --- job types ---
    def list_job_types(self) -> List[schemas.JobType]:
        return sorted(self._load(JOB_TYPES_KEY, schemas.JobType), key=lambda jt: jt.name)

    def get_job_type(self, job_type_id: int) -> Optional[schemas.JobType]:
        return next((jt for jt in self._load(JOB_TYPES_KEY, schemas.JobType) if jt.id == job_type_id), None)

    def get_job_type_by_name(self, name: str) -> Optional[schemas.JobType]:
        return next((jt for jt in self._load(JOB_TYPES_KEY, schemas.JobType) if jt.name == name), None)

    def _insert_job_type(self, job_type: schemas.JobTypeCreate) -> schemas.JobType:
        job_types = self._load(JOB_TYPES_KEY, schemas.JobType)
        next_id = self._next_id(NEXT_JOB_TYPE_ID_KEY)
        created = schemas.JobType(id=next_id, name=job_type.name, created_at=self.clock())
        job_types.append(created)
        self.store.set_many(
            {
                JOB_TYPES_KEY: self._dump(job_types),
                NEXT_JOB_TYPE_ID_KEY: json.dumps(next_id + 1),
            }
        )
        return created

    # --- job sessions ---
    def _insert_job_session(
        self, session: schemas.JobSessionCreate, user_id: str
    ) -> schemas.JobSession:
        sessions = self._load(JOB_SESSIONS_KEY, schemas.JobSession)
        next_id = self._next_id(NEXT_SESSION_ID_KEY)
        created = schemas.JobSession(
            id=next_id,
            user_id=user_id,
            job_type_id=session.job_type_id,
            duration_minutes=session.duration_minutes,
            earnings=session.earnings,
            expenses=session.expenses,
            created_at=self.clock(),
        )
        sessions.append(created)
        self.store.set_many(
            {
                JOB_SESSIONS_KEY: self._dump(sessions),
                NEXT_SESSION_ID_KEY: json.dumps(next_id + 1),
            }
        )
        return created

    def snapshot_job_sessions(self, user_id: Optional[str] = None) -> List[schemas.JobSession]:
        sessions = sorted(self._load(JOB_SESSIONS_KEY, schemas.JobSession), key=lambda s: s.id)
        if user_id is not None:
            sessions = [s for s in sessions if s.user_id == user_id]
        return sessions

    def _select_job_sessions(
        self, user_id: Optional[str], limit: Optional[int], offset: int
    ) -> List[schemas.JobSessionWithDetails]:
        job_types = {jt.id: jt for jt in self._load(JOB_TYPES_KEY, schemas.JobType)}
        detailed = []
        for session in self.snapshot_job_sessions(user_id):
            job_type = job_types.get(session.job_type_id)
            if job_type is None:
                continue
            user = self._users.get(session.user_id)
            detailed.append(
                schemas.JobSessionWithDetails(
                    **session.model_dump(),
                    job_type=job_type,
                    user=schemas.UserSummary.model_validate(user.model_dump()) if user else None,
                )
            )
        # Snapshot is id ascending and sort is stable, so equal timestamps keep id order
        detailed.sort(key=lambda s: s.created_at, reverse=True)
        end = None if limit is None else offset + limit
        return detailed[offset:end]

    def count_job_sessions(self, user_id: Optional[str] = None) -> int:
        return len(self.snapshot_job_sessions(user_id))
