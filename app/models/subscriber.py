"""Newsletter subscriber model."""

import enum
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.security import generate_hex_token
from app.models.base import Base, JSONType, UTCDateTime, utcnow


class Frequency(str, enum.Enum):
    """How often a subscriber wants to hear from us."""

    IMMEDIATE = "immediate"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SubscriberSource(str, enum.Enum):
    """Where on the site the subscription came from."""

    HOMEPAGE = "homepage"
    PROJECT_PAGE = "project-page"
    ABOUT_PAGE = "about-page"
    CONTACT_FORM = "contact-form"
    BLOG = "blog"
    SOCIAL_MEDIA = "social-media"
    OTHER = "other"


class UnsubscribeReason(str, enum.Enum):
    """Reasons offered on the unsubscribe page."""

    TOO_FREQUENT = "too-frequent"
    NOT_RELEVANT = "not-relevant"
    NEVER_SIGNED_UP = "never-signed-up"
    TECHNICAL_ISSUES = "technical-issues"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "UnsubscribeReason":
        """Map unknown or missing reasons to OTHER."""
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


DEFAULT_PREFERENCES: dict[str, Any] = {
    "projectUpdates": True,
    "blogPosts": True,
    "newsletters": True,
    "frequency": Frequency.WEEKLY.value,
}


class Subscriber(Base):
    """A newsletter subscriber.

    Verification fields exist only while ``email_verified`` is false.
    ``unsubscribe_token`` is generated once and never rotated; it is the
    bearer credential for self-service unsubscribe and preference changes.
    """

    __tablename__ = "subscribers"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )
    email_verification_token: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True
    )
    email_verification_expires: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Preferences (shallow-merged on update)
    preferences: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=lambda: dict(DEFAULT_PREFERENCES),
        nullable=False,
    )

    # Source tracking
    source: Mapped[str] = mapped_column(
        String(30), default=SubscriberSource.HOMEPAGE.value, nullable=False, index=True
    )
    referrer: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)

    # Engagement stats
    emails_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    emails_opened: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    links_clicked: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_email_sent: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_email_opened: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_engagement: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Unsubscribe
    unsubscribe_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    unsubscribed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    unsubscribe_reason: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Segmentation
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)

    subscribed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<Subscriber {self.email} ({state})>"


def verification_fields(now: datetime, lifetime: timedelta) -> dict[str, Any]:
    """Fresh verification token and expiry."""
    return {
        "email_verification_token": generate_hex_token(),
        "email_verification_expires": now + lifetime,
    }


def new_subscriber(
    *,
    email: str,
    verification_lifetime: timedelta,
    first_name: str | None = None,
    last_name: str | None = None,
    preferences: dict[str, Any] | None = None,
    source: str | None = None,
    referrer: str | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
    tags: list[str] | None = None,
) -> Subscriber:
    """Build a fully-initialized, not yet persisted subscriber.

    New subscribers start unverified and active, with a pending
    verification token and a permanent unsubscribe token.
    """
    now = utcnow()
    return Subscriber(
        email=email.strip().lower(),
        first_name=first_name.strip() if first_name else None,
        last_name=last_name.strip() if last_name else None,
        is_active=True,
        email_verified=False,
        preferences={**DEFAULT_PREFERENCES, **(preferences or {})},
        source=source or SubscriberSource.HOMEPAGE.value,
        referrer=referrer,
        user_agent=user_agent,
        ip_address=ip_address,
        emails_received=0,
        emails_opened=0,
        links_clicked=0,
        unsubscribe_token=generate_hex_token(),
        tags=list(tags or []),
        subscribed_at=now,
        **verification_fields(now, verification_lifetime),
    )
