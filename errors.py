"""Error taxonomy shared by both storage backends and the request layer."""
from __future__ import annotations

from typing import Any, Iterable, Optional


class StorageError(Exception):
    """Base class for every failure the storage layer reports to callers."""

    message = "Storage error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(StorageError):
    """Malformed or out-of-range input, rejected before any write.

    ``errors`` holds one dict per offending field: ``{"field", "message"}``.
    """

    message = "Invalid data"

    def __init__(self, errors: Iterable[dict[str, Any]], message: Optional[str] = None) -> None:
        super().__init__(message)
        self.errors = list(errors)

    @property
    def fields(self) -> list[str]:
        return [e["field"] for e in self.errors]

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Translate a ``pydantic.ValidationError`` into our own type."""
        return cls(_field_errors(exc.errors()))

    @classmethod
    def from_request(cls, exc) -> "ValidationError":
        """Translate FastAPI's ``RequestValidationError``.

        Its locations start with the request part (``body``, ``query``...),
        which is dropped so field names match the payload keys.
        """
        return cls(_field_errors(exc.errors(), skip=1))


def _field_errors(errors: Iterable[dict[str, Any]], skip: int = 0) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"][skip:]) or "__root__",
            "message": err["msg"],
        }
        for err in errors
    ]


class ConflictError(StorageError):
    message = "Job type already exists"


class NotFoundError(StorageError):
    message = "Job type not found"


class StorageUnavailable(StorageError):
    """Backend I/O failure. Never retried inside the core."""

    message = "Storage backend unavailable"
