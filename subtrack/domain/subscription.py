from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .months import month_start


class Subscription(BaseModel):
    """A user's subscription to a service, billed per active month.

    ``start_date``/``end_date`` are inclusive month bounds, stored as the 1st
    of the month; ``end_date=None`` means still active.
    """

    id: Optional[int] = None
    service_name: str = Field(min_length=1)
    price: int = Field(gt=0)
    user_id: UUID
    start_date: date
    end_date: Optional[date] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _datetime_to_month(cls, v):
        if isinstance(v, datetime):
            return month_start(v)
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_month(cls, v: Optional[date]) -> Optional[date]:
        return month_start(v) if v is not None else None
