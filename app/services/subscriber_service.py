"""Subscriber lifecycle: subscribe, verify, unsubscribe, resubscribe, preferences."""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    DuplicateEmailError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    UnauthorizedError,
)
from app.models.base import utcnow
from app.models.subscriber import (
    Subscriber,
    UnsubscribeReason,
    new_subscriber,
    verification_fields,
)
from app.schemas.subscriber import (
    SourceCount,
    SubscribeRequest,
    SubscriberFilters,
    SubscriberOverview,
    SubscriberStats,
    TrackingEvent,
)
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

RECENT_WINDOW_DAYS = 30


class SubscriberService:
    """Manages newsletter subscribers.

    A subscriber moves independently along two axes: verified / unverified
    and active / inactive. Every transition is a single conditional UPDATE,
    so a consumed verification token or a finished reactivation can't be
    replayed by a concurrent request.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.subscribers = RecordStore(db, Subscriber)

    @property
    def verification_lifetime(self) -> timedelta:
        return timedelta(hours=settings.verification_token_expire_hours)

    # --- subscribe / create / resubscribe ---

    async def subscribe(
        self,
        data: SubscribeRequest,
        *,
        referrer: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[Subscriber, bool]:
        """Subscribe an email, reactivating it if it had unsubscribed.

        Returns the subscriber and whether it was reactivated.

        Raises:
            DuplicateEmailError: the email is already an active subscriber
        """
        existing = await self.subscribers.find_one(email=data.email)
        if existing is not None:
            if existing.is_active:
                raise DuplicateEmailError()
            return await self.resubscribe(existing), True

        subscriber = await self.create(
            data,
            referrer=referrer,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        return subscriber, False

    async def create(
        self,
        data: SubscribeRequest,
        *,
        referrer: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> Subscriber:
        """Create a new unverified, active subscriber.

        Raises:
            DuplicateEmailError: a record with this email already exists
        """
        subscriber = new_subscriber(
            email=data.email,
            verification_lifetime=self.verification_lifetime,
            first_name=data.first_name,
            last_name=data.last_name,
            preferences=data.preferences.changes() if data.preferences else None,
            source=data.source.value,
            referrer=referrer,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        try:
            subscriber = await self.subscribers.create(subscriber)
        except ConflictError as exc:
            raise DuplicateEmailError() from exc
        logger.info("New subscriber %s from %s", subscriber.id, subscriber.source)
        return subscriber

    async def resubscribe(self, subscriber: Subscriber) -> Subscriber:
        """Reactivate an unsubscribed record.

        Verification state, preferences and the unsubscribe token are kept.
        """
        updated = await self.subscribers.update_one(
            [Subscriber.id == subscriber.id, Subscriber.is_active.is_(False)],
            {"is_active": True, "unsubscribed_at": None, "unsubscribe_reason": None},
        )
        if updated is None:
            # Someone else reactivated it first
            raise DuplicateEmailError()
        logger.info("Subscriber %s resubscribed", updated.id)
        return updated

    # --- verification ---

    async def verify_email(self, token: str) -> Subscriber:
        """Consume a verification token.

        Raises:
            InvalidOrExpiredTokenError: unknown, already used or expired token
        """
        now = utcnow()
        verified = await self.subscribers.update_one(
            [
                Subscriber.email_verification_token == token,
                Subscriber.email_verification_expires > now,
                Subscriber.email_verified.is_(False),
            ],
            {
                "email_verified": True,
                "email_verification_token": None,
                "email_verification_expires": None,
            },
        )
        if verified is None:
            raise InvalidOrExpiredTokenError()
        logger.info("Subscriber %s verified", verified.id)
        return verified

    async def regenerate_verification_token(self, email: str) -> Subscriber:
        """Issue a fresh verification token for an unverified subscriber."""
        email = email.strip().lower()
        updated = await self.subscribers.update_one(
            [Subscriber.email == email, Subscriber.email_verified.is_(False)],
            verification_fields(utcnow(), self.verification_lifetime),
        )
        if updated is None:
            raise NotFoundError("Unverified subscriber")
        return updated

    # --- unsubscribe / preferences ---

    def _lookup(self, email: str | None, token: str | None) -> list[Any]:
        if token:
            return [Subscriber.unsubscribe_token == token]
        if email:
            return [Subscriber.email == email.strip().lower()]
        raise UnauthorizedError("Token or email required")

    async def unsubscribe(
        self,
        *,
        email: str | None = None,
        token: str | None = None,
        reason: str | None = None,
    ) -> Subscriber:
        """Deactivate a subscriber found by unsubscribe token (preferred) or email.

        Unknown reasons are recorded as ``other``.
        """
        updated = await self.subscribers.update_one(
            self._lookup(email, token),
            {
                "is_active": False,
                "unsubscribed_at": utcnow(),
                "unsubscribe_reason": UnsubscribeReason.parse(reason).value,
            },
        )
        if updated is None:
            raise NotFoundError("Subscriber")
        logger.info("Subscriber %s unsubscribed (%s)", updated.id, updated.unsubscribe_reason)
        return updated

    async def update_preferences(
        self,
        new_preferences: dict[str, Any],
        *,
        email: str | None = None,
        token: str | None = None,
        is_admin: bool = False,
    ) -> Subscriber:
        """Shallow-merge preference fields into the subscriber's preferences.

        Self-service callers authenticate with the unsubscribe token; lookup
        by email alone is reserved for admins.

        Raises:
            UnauthorizedError: neither a token nor admin credentials
            NotFoundError: no matching subscriber
        """
        if not token and not is_admin:
            raise UnauthorizedError("Token or authentication required")
        criteria = self._lookup(email, token)

        # Row lock keeps concurrent merges from overwriting each other
        current = await self.subscribers.find_one(*criteria, for_update=True)
        if current is None:
            await self.db.rollback()
            raise NotFoundError("Subscriber")

        merged = {**(current.preferences or {}), **new_preferences}
        updated = await self.subscribers.update_one(
            [Subscriber.id == current.id],
            {"preferences": merged},
        )
        if updated is None:
            raise NotFoundError("Subscriber")
        return updated

    # --- engagement tracking ---

    async def track(self, subscriber_id: UUID, event: TrackingEvent) -> Subscriber:
        """Record an email sent / opened / link clicked event."""
        now = utcnow()
        values: dict[str, Any]
        if event == "sent":
            values = {
                "emails_received": Subscriber.emails_received + 1,
                "last_email_sent": now,
            }
        elif event == "opened":
            values = {
                "emails_opened": Subscriber.emails_opened + 1,
                "last_email_opened": now,
                "last_engagement": now,
            }
        else:
            values = {
                "links_clicked": Subscriber.links_clicked + 1,
                "last_engagement": now,
            }

        updated = await self.subscribers.update_one([Subscriber.id == subscriber_id], values)
        if updated is None:
            raise NotFoundError("Subscriber")
        return updated

    # --- admin read side ---

    async def list_subscribers(self, filters: SubscriberFilters) -> tuple[list[Subscriber], int]:
        """Filtered, newest-first page of subscribers plus the total match count."""
        criteria: list[Any] = []
        if filters.active is not None:
            criteria.append(Subscriber.is_active.is_(filters.active))
        if filters.verified is not None:
            criteria.append(Subscriber.email_verified.is_(filters.verified))
        if filters.source is not None:
            criteria.append(Subscriber.source == filters.source.value)
        if filters.search:
            term = filters.search.strip()
            criteria.append(
                or_(
                    Subscriber.email.icontains(term, autoescape=True),
                    Subscriber.first_name.icontains(term, autoescape=True),
                    Subscriber.last_name.icontains(term, autoescape=True),
                )
            )

        items = await self.subscribers.find(
            criteria,
            order_by=[Subscriber.subscribed_at.desc()],
            offset=(filters.page - 1) * filters.limit,
            limit=filters.limit,
        )
        total = await self.subscribers.count(criteria)
        return items, total

    async def get_active_subscribers(self, frequency: str | None = None) -> list[Subscriber]:
        """Active, verified subscribers, optionally for a single frequency."""
        criteria: list[Any] = [
            Subscriber.is_active.is_(True),
            Subscriber.email_verified.is_(True),
        ]
        if frequency:
            criteria.append(Subscriber.preferences["frequency"].as_string() == frequency)
        return await self.subscribers.find(criteria, order_by=[Subscriber.subscribed_at])

    async def get_stats(self) -> SubscriberStats:
        """Overview counts, active subscribers by source, and recent sign-ups."""
        row = await self.subscribers.aggregate(
            func.count().label("total"),
            func.count(case((Subscriber.is_active.is_(True), 1))).label("active"),
            func.count(case((Subscriber.email_verified.is_(True), 1))).label("verified"),
        )
        total = int(row["total"] or 0)
        active = int(row["active"] or 0)
        overview = SubscriberOverview(
            total=total,
            active=active,
            verified=int(row["verified"] or 0),
            unsubscribed=total - active,
        )

        by_source = await self.subscribers.count_by(
            Subscriber.source, [Subscriber.is_active.is_(True)]
        )
        since = utcnow() - timedelta(days=RECENT_WINDOW_DAYS)
        recent = await self.subscribers.count([Subscriber.subscribed_at >= since])

        return SubscriberStats(
            overview=overview,
            sources=[SourceCount(source=source, count=count) for source, count in by_source],
            new_subscribers_last_30_days=recent,
        )

    async def delete_subscriber(self, subscriber_id: UUID) -> None:
        """Hard-delete a subscriber (admin only)."""
        deleted = await self.subscribers.delete(Subscriber.id == subscriber_id)
        if not deleted:
            raise NotFoundError("Subscriber")
        logger.info("Subscriber %s deleted", subscriber_id)
