"""SQLAlchemy models."""

from app.models.base import Base
from app.models.subscriber import (
    Frequency,
    Subscriber,
    SubscriberSource,
    UnsubscribeReason,
)
from app.models.user import User, UserRole

__all__ = [
    # Base
    "Base",
    # Admin accounts
    "User",
    "UserRole",
    # Newsletter
    "Subscriber",
    "SubscriberSource",
    "Frequency",
    "UnsubscribeReason",
]
