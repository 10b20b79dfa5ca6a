from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from councilhub.events.enums import EventStatus, Priority, TaskStatus
from councilhub.utils import as_aware


def _not_null(value):
    if value is None:
        raise ValueError("may not be null")
    return value


class EventBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    category: str = Field(..., min_length=1, max_length=100)
    start_date: datetime
    end_date: datetime
    location: str = Field(..., min_length=1, max_length=255)
    venue_name: Optional[str] = Field(None, max_length=255)
    contact_name: Optional[str] = Field(None, max_length=200)
    contact_email: Optional[str] = Field(None, max_length=255)
    registration_url: Optional[str] = Field(None, max_length=500)
    status: EventStatus = EventStatus.DRAFT
    published: bool = False


class EventCreate(EventBase):
    @field_validator("start_date", "end_date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        # naive timestamps are taken as UTC
        return as_aware(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> "EventCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    venue_name: Optional[str] = Field(None, max_length=255)
    contact_name: Optional[str] = Field(None, max_length=200)
    contact_email: Optional[str] = Field(None, max_length=255)
    registration_url: Optional[str] = Field(None, max_length=500)
    status: Optional[EventStatus] = None
    published: Optional[bool] = None

    @field_validator(
        "title", "description", "category", "start_date", "end_date",
        "location", "status", "published",
    )
    @classmethod
    def _required(cls, value):
        return _not_null(value)

    @field_validator("start_date", "end_date")
    @classmethod
    def _aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_aware(value)


class EventOut(EventBase):
    id: int
    slug: str
    created_by_id: Optional[int] = None

    class Config:
        from_attributes = True


class CalendarEventOut(BaseModel):
    id: int
    title: str
    slug: str
    status: EventStatus
    start_date: datetime
    end_date: datetime

    class Config:
        from_attributes = True


class CalendarDayOut(BaseModel):
    date: date
    is_current_month: bool
    events: List[CalendarEventOut]
    overflow: int
    overflow_label: Optional[str] = None


class CalendarOut(BaseModel):
    year: int
    month: int
    status: Optional[EventStatus] = None
    days: List[CalendarDayOut]
    month_events: List[CalendarEventOut]
    status_counts: Dict[str, int]


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=300)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    event_id: int
    assigned_to_id: Optional[int] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=300)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    assigned_to_id: Optional[int] = None

    @field_validator("title", "status", "priority")
    @classmethod
    def _required(cls, value):
        return _not_null(value)


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str]
    status: TaskStatus
    priority: Priority
    due_date: Optional[date]
    completed_at: Optional[datetime]
    event_id: int
    assigned_to_id: Optional[int]
    created_by_id: Optional[int]

    class Config:
        from_attributes = True
