from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index
from sqlmodel import SQLModel, Field, Column, JSON


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Provider(SQLModel, table=True):
    __tablename__ = "providers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    verified: Optional[bool] = None
    experience_years: Optional[int] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class Event(SQLModel, table=True):
    """A provider program or session, as scraped into the `events` table."""
    __tablename__ = "events"

    id: Optional[int] = Field(default=None, primary_key=True)
    provider_id: Optional[int] = Field(default=None, foreign_key="providers.id", index=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    interests: Optional[list] = Field(default=None, sa_column=Column(JSON))
    tags: Optional[list] = Field(default=None, sa_column=Column(JSON))

    # free-text ages ("7-12", "Teens", "13+") when min/max were not extracted
    ages: Optional[str] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None

    location: Optional[str] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    days: Optional[list] = Field(default=None, sa_column=Column(JSON))
    times: Optional[list] = Field(default=None, sa_column=Column(JSON))
    recurring: Optional[bool] = None
    start_date_time: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))

    price: Optional[float] = None
    pricing_type: Optional[str] = None
    currency: Optional[str] = None
    is_free: Optional[bool] = None

    max_students: Optional[int] = None
    current_enrollment: Optional[int] = None
    waitlist: Optional[bool] = None

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))

    __table_args__ = (
        Index("ix_events_provider_category", "provider_id", "category"),
    )
