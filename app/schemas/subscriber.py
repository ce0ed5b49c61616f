"""Pydantic schemas for newsletter subscribers."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from app.models.subscriber import Frequency, SubscriberSource
from app.schemas.common import BaseSchema, Pagination

# === Preferences ===


class SubscriberPreferences(BaseSchema):
    """Full preference set as stored on a subscriber."""

    projectUpdates: bool = True  # noqa: N815 - wire format is camelCase
    blogPosts: bool = True  # noqa: N815
    newsletters: bool = True
    frequency: Frequency = Frequency.WEEKLY


class PreferencesUpdate(BaseSchema):
    """Partial preferences; omitted fields keep their current value."""

    projectUpdates: bool | None = None  # noqa: N815
    blogPosts: bool | None = None  # noqa: N815
    newsletters: bool | None = None
    frequency: Frequency | None = None

    def changes(self) -> dict[str, object]:
        """Only the fields the caller actually sent."""
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


# === Requests ===


class SubscribeRequest(BaseSchema):
    """Public subscribe form."""

    email: EmailStr
    first_name: str | None = Field(default=None, max_length=50, alias="firstName")
    last_name: str | None = Field(default=None, max_length=50, alias="lastName")
    preferences: PreferencesUpdate | None = None
    source: SubscriberSource = SubscriberSource.HOMEPAGE

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UpdatePreferencesRequest(BaseSchema):
    """Preference change, authorised by unsubscribe token or by an admin."""

    preferences: PreferencesUpdate
    token: str | None = None


# === Responses ===


class SubscriberSummary(BaseSchema):
    """What a subscriber sees after subscribing."""

    email: str
    is_active: bool
    email_verified: bool
    preferences: SubscriberPreferences


class SubscriberActionResponse(BaseSchema):
    success: bool = True
    message: str
    subscriber: SubscriberSummary


class SubscribeResponse(SubscriberActionResponse):
    reactivated: bool = False


class PreferencesResponse(BaseSchema):
    success: bool = True
    message: str = "Preferences updated successfully"
    preferences: SubscriberPreferences


class SubscriberResponse(BaseSchema):
    """Admin view of a subscriber; tokens are never exposed."""

    id: UUID
    email: str
    first_name: str | None
    last_name: str | None
    is_active: bool
    email_verified: bool
    preferences: SubscriberPreferences
    source: str
    referrer: str | None
    tags: list[str]
    emails_received: int
    emails_opened: int
    links_clicked: int
    last_email_sent: datetime | None
    last_email_opened: datetime | None
    last_engagement: datetime | None
    unsubscribed_at: datetime | None
    unsubscribe_reason: str | None
    subscribed_at: datetime
    updated_at: datetime


class SubscriberListResponse(BaseSchema):
    success: bool = True
    subscribers: list[SubscriberResponse]
    pagination: Pagination


class ActiveSubscribersResponse(BaseSchema):
    success: bool = True
    count: int
    subscribers: list[SubscriberResponse]


class SubscriberOverview(BaseSchema):
    total: int = 0
    active: int = 0
    verified: int = 0
    unsubscribed: int = 0


class SourceCount(BaseSchema):
    source: str
    count: int


class SubscriberStats(BaseSchema):
    success: bool = True
    overview: SubscriberOverview
    sources: list[SourceCount]
    new_subscribers_last_30_days: int


class SubscriberFilters(BaseSchema):
    """Admin list query."""

    active: bool | None = None
    verified: bool | None = None
    source: SubscriberSource | None = None
    search: str | None = Field(default=None, max_length=100)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


TrackingEvent = Literal["sent", "opened", "clicked"]


class SubscriberDetailResponse(BaseSchema):
    success: bool = True
    subscriber: SubscriberResponse
