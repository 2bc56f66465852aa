"""Pydantic models for the data shapes the core reads, writes and derives.

Field names are snake_case in Python and camelCase on the wire
(``durationMinutes``, ``averageHourlyRate``...), matching what the dashboard
client expects.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from errors import ValidationError

CENT = Decimal("0.01")

ModelT = TypeVar("ModelT", bound=BaseModel)

# Aggregated money goes out as a JSON number; stored amounts stay decimal strings
MoneyTotal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# --- Job types ---
class JobTypeCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)


class JobType(CamelModel):
    id: int
    name: str
    created_at: Optional[datetime] = None


# --- Users (external identity) ---
class UserSummary(CamelModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class User(UserSummary):
    email: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Profile fields an upsert may refresh; fields the caller leaves unset are kept
USER_PROFILE_FIELDS = ("email", "first_name", "last_name", "profile_image_url")


# --- Job sessions ---
class JobSessionCreate(CamelModel):
    job_type_id: int
    duration_minutes: int = Field(ge=1)
    earnings: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    expenses: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)

    @field_validator("earnings", "expenses")
    @classmethod
    def _to_cents(cls, value: Decimal) -> Decimal:
        return value.quantize(CENT)


class JobSession(CamelModel):
    id: int
    user_id: str
    job_type_id: int
    duration_minutes: int
    earnings: Decimal
    expenses: Decimal = Decimal("0.00")
    created_at: Optional[datetime] = None


class JobSessionWithDetails(JobSession):
    job_type: JobType
    user: Optional[UserSummary] = None


# --- Derived views ---
class JobProfitability(CamelModel):
    job_type: JobType
    average_hourly_rate: int
    total_sessions: int
    total_hours: float
    total_earnings: MoneyTotal
    total_expenses: MoneyTotal
    net_profit: MoneyTotal


class UserStats(CamelModel):
    total_earned: MoneyTotal = Decimal("0")
    total_hours: float = 0
    best_hourly_rate: int = 0
    jobs_completed: int = 0


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class JobSessionPage(CamelModel):
    sessions: List[JobSessionWithDetails]
    pagination: Pagination


def parse(model: Type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` into ``model``, raising our ``ValidationError`` on failure."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc
