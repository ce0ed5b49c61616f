"""Tests for SubscriberService.

Covers:
- subscribe / resubscribe / duplicate detection
- single-use, expiring email verification
- unsubscribe by token or email, with reason normalisation
- shallow preference merges and their authorisation
- listing, stats, engagement tracking and deletion
"""

import uuid
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DuplicateEmailError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    UnauthorizedError,
)
from app.models.subscriber import Subscriber
from app.schemas.subscriber import SubscribeRequest, SubscriberFilters
from app.services.subscriber_service import SubscriberService


def _request(email: str = "reader@example.com", **extra: Any) -> SubscribeRequest:
    return SubscribeRequest.model_validate({"email": email, **extra})


# ---------------------------------------------------------------------------
# subscribe / resubscribe
# ---------------------------------------------------------------------------


class TestSubscribe:
    async def test_new_subscriber_defaults(self, db_session: AsyncSession) -> None:
        service = SubscriberService(db_session)
        subscriber, reactivated = await service.subscribe(
            _request("Reader@Example.COM"), ip_address="10.0.0.1"
        )

        assert reactivated is False
        assert subscriber.email == "reader@example.com"
        assert subscriber.is_active is True
        assert subscriber.email_verified is False
        assert subscriber.source == "homepage"
        assert subscriber.ip_address == "10.0.0.1"
        assert subscriber.preferences == {
            "projectUpdates": True,
            "blogPosts": True,
            "newsletters": True,
            "frequency": "weekly",
        }
        assert len(subscriber.unsubscribe_token) == 64
        assert subscriber.email_verification_token is not None
        assert subscriber.email_verification_expires is not None
        lifetime = subscriber.email_verification_expires - subscriber.subscribed_at
        assert abs(lifetime - timedelta(hours=24)) < timedelta(seconds=5)

    async def test_initial_preferences_and_source(self, db_session: AsyncSession) -> None:
        subscriber, _ = await SubscriberService(db_session).subscribe(
            _request(
                firstName="Grace",
                source="blog",
                preferences={"frequency": "monthly", "blogPosts": False},
            )
        )
        assert subscriber.first_name == "Grace"
        assert subscriber.source == "blog"
        assert subscriber.preferences["frequency"] == "monthly"
        assert subscriber.preferences["blogPosts"] is False
        assert subscriber.preferences["newsletters"] is True

    async def test_active_duplicate_is_rejected(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory(email="reader@example.com")
        with pytest.raises(DuplicateEmailError) as exc_info:
            await SubscriberService(db_session).subscribe(_request("READER@example.com"))
        assert exc_info.value.status_code == 409

    async def test_inactive_subscriber_is_reactivated(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        original = await subscriber_factory(
            email="reader@example.com",
            email_verified=True,
            preferences={"frequency": "monthly"},
        )
        service = SubscriberService(db_session)
        await service.unsubscribe(email="reader@example.com", reason="too-frequent")

        subscriber, reactivated = await service.subscribe(_request())

        assert reactivated is True
        assert subscriber.id == original.id
        assert subscriber.is_active is True
        assert subscriber.unsubscribed_at is None
        assert subscriber.unsubscribe_reason is None
        # Verification, preferences and the unsubscribe token survive
        assert subscriber.email_verified is True
        assert subscriber.preferences["frequency"] == "monthly"
        assert subscriber.unsubscribe_token == original.unsubscribe_token

    async def test_resubscribe_of_active_record_is_a_conflict(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        with pytest.raises(DuplicateEmailError):
            await SubscriberService(db_session).resubscribe(subscriber)


# ---------------------------------------------------------------------------
# verification
# ---------------------------------------------------------------------------


class TestVerifyEmail:
    async def test_verify_consumes_token(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        token = subscriber.email_verification_token

        verified = await SubscriberService(db_session).verify_email(token)

        assert verified.id == subscriber.id
        assert verified.email_verified is True
        assert verified.email_verification_token is None
        assert verified.email_verification_expires is None

    async def test_token_works_only_once(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        token = subscriber.email_verification_token
        service = SubscriberService(db_session)

        await service.verify_email(token)
        with pytest.raises(InvalidOrExpiredTokenError):
            await service.verify_email(token)

    async def test_expired_token_is_rejected(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory(verification_lifetime=timedelta(seconds=-1))
        with pytest.raises(InvalidOrExpiredTokenError) as exc_info:
            await SubscriberService(db_session).verify_email(
                subscriber.email_verification_token
            )
        assert exc_info.value.status_code == 400

        await db_session.refresh(subscriber)
        assert subscriber.email_verified is False

    async def test_unknown_token_is_rejected(self, db_session: AsyncSession) -> None:
        with pytest.raises(InvalidOrExpiredTokenError):
            await SubscriberService(db_session).verify_email("f" * 64)

    async def test_regenerate_issues_new_token(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        old_token = subscriber.email_verification_token
        service = SubscriberService(db_session)

        updated = await service.regenerate_verification_token("READER@example.com")
        assert updated.email_verification_token != old_token

        with pytest.raises(InvalidOrExpiredTokenError):
            await service.verify_email(old_token)
        verified = await service.verify_email(updated.email_verification_token)
        assert verified.email_verified is True

    async def test_regenerate_for_verified_subscriber_is_not_found(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory(email_verified=True)
        with pytest.raises(NotFoundError):
            await SubscriberService(db_session).regenerate_verification_token(
                "reader@example.com"
            )


# ---------------------------------------------------------------------------
# unsubscribe
# ---------------------------------------------------------------------------


class TestUnsubscribe:
    async def test_unsubscribe_by_token(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        updated = await SubscriberService(db_session).unsubscribe(
            token=subscriber.unsubscribe_token, reason="not-relevant"
        )
        assert updated.is_active is False
        assert updated.unsubscribed_at is not None
        assert updated.unsubscribe_reason == "not-relevant"

    async def test_missing_reason_defaults_to_other(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory()
        updated = await SubscriberService(db_session).unsubscribe(email="reader@example.com")
        assert updated.unsubscribe_reason == "other"

    async def test_unknown_reason_becomes_other(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory()
        updated = await SubscriberService(db_session).unsubscribe(
            email="reader@example.com", reason="spam-me-not"
        )
        assert updated.unsubscribe_reason == "other"

    async def test_unknown_subscriber(self, db_session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await SubscriberService(db_session).unsubscribe(email="ghost@example.com")

    async def test_bad_token(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory()
        with pytest.raises(NotFoundError):
            await SubscriberService(db_session).unsubscribe(token="0" * 64)

    async def test_neither_token_nor_email(self, db_session: AsyncSession) -> None:
        with pytest.raises(UnauthorizedError):
            await SubscriberService(db_session).unsubscribe()


# ---------------------------------------------------------------------------
# preferences
# ---------------------------------------------------------------------------


class TestUpdatePreferences:
    async def test_shallow_merge_with_token(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        updated = await SubscriberService(db_session).update_preferences(
            {"frequency": "monthly"}, token=subscriber.unsubscribe_token
        )
        assert updated.preferences == {
            "projectUpdates": True,
            "blogPosts": True,
            "newsletters": True,
            "frequency": "monthly",
        }

    async def test_admin_may_use_email(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory()
        updated = await SubscriberService(db_session).update_preferences(
            {"newsletters": False}, email="reader@example.com", is_admin=True
        )
        assert updated.preferences["newsletters"] is False
        assert updated.preferences["frequency"] == "weekly"

    async def test_email_alone_is_unauthorized(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory()
        with pytest.raises(UnauthorizedError):
            await SubscriberService(db_session).update_preferences(
                {"newsletters": False}, email="reader@example.com"
            )

    async def test_wrong_token_is_not_found(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory()
        with pytest.raises(NotFoundError):
            await SubscriberService(db_session).update_preferences(
                {"newsletters": False}, token="0" * 64
            )

    async def test_successive_merges_accumulate(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        service = SubscriberService(db_session)
        await service.update_preferences({"blogPosts": False}, token=subscriber.unsubscribe_token)
        updated = await service.update_preferences(
            {"frequency": "immediate"}, token=subscriber.unsubscribe_token
        )
        assert updated.preferences["blogPosts"] is False
        assert updated.preferences["frequency"] == "immediate"


# ---------------------------------------------------------------------------
# engagement tracking
# ---------------------------------------------------------------------------


class TestTracking:
    async def test_counters_and_timestamps(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        service = SubscriberService(db_session)

        await service.track(subscriber.id, "sent")
        await service.track(subscriber.id, "sent")
        await service.track(subscriber.id, "opened")
        updated = await service.track(subscriber.id, "clicked")

        assert updated.emails_received == 2
        assert updated.emails_opened == 1
        assert updated.links_clicked == 1
        assert updated.last_email_sent is not None
        assert updated.last_email_opened is not None
        assert updated.last_engagement is not None

    async def test_unknown_subscriber(self, db_session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await SubscriberService(db_session).track(uuid.uuid4(), "sent")


# ---------------------------------------------------------------------------
# admin read side
# ---------------------------------------------------------------------------


class TestListAndStats:
    async def test_list_filters_and_search(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory(email="ada@example.com", first_name="Ada")
        await subscriber_factory(email="grace@example.com", first_name="Grace", source="blog")
        await subscriber_factory(email="linus@example.com", first_name="Linus", is_active=False)
        service = SubscriberService(db_session)

        items, total = await service.list_subscribers(SubscriberFilters(active=True))
        assert total == 2
        assert {s.email for s in items} == {"ada@example.com", "grace@example.com"}

        items, total = await service.list_subscribers(SubscriberFilters(search="GRAC"))
        assert total == 1
        assert items[0].email == "grace@example.com"

        items, total = await service.list_subscribers(SubscriberFilters(source="blog"))
        assert [s.email for s in items] == ["grace@example.com"]

    async def test_search_treats_wildcards_literally(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory(email="ada@example.com")
        _, total = await SubscriberService(db_session).list_subscribers(
            SubscriberFilters(search="%")
        )
        assert total == 0

    async def test_list_pagination_newest_first(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        for i in range(5):
            await subscriber_factory(email=f"reader{i}@example.com")
        service = SubscriberService(db_session)

        page_one, total = await service.list_subscribers(SubscriberFilters(page=1, limit=2))
        page_three, _ = await service.list_subscribers(SubscriberFilters(page=3, limit=2))

        assert total == 5
        assert [s.email for s in page_one] == ["reader4@example.com", "reader3@example.com"]
        assert [s.email for s in page_three] == ["reader0@example.com"]

    async def test_active_subscribers_by_frequency(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory(email="weekly@example.com", email_verified=True)
        await subscriber_factory(
            email="monthly@example.com",
            email_verified=True,
            preferences={"frequency": "monthly"},
        )
        await subscriber_factory(email="pending@example.com")
        service = SubscriberService(db_session)

        everyone = await service.get_active_subscribers()
        monthly = await service.get_active_subscribers("monthly")

        assert {s.email for s in everyone} == {"weekly@example.com", "monthly@example.com"}
        assert [s.email for s in monthly] == ["monthly@example.com"]

    async def test_stats(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        await subscriber_factory(email="a@example.com", email_verified=True)
        await subscriber_factory(email="b@example.com", source="blog")
        await subscriber_factory(email="c@example.com", source="blog")
        await subscriber_factory(email="d@example.com", is_active=False)

        stats = await SubscriberService(db_session).get_stats()

        assert stats.overview.total == 4
        assert stats.overview.active == 3
        assert stats.overview.verified == 1
        assert stats.overview.unsubscribed == 1
        assert [(s.source, s.count) for s in stats.sources] == [("blog", 2), ("homepage", 1)]
        assert stats.new_subscribers_last_30_days == 4

    async def test_stats_on_empty_store(self, db_session: AsyncSession) -> None:
        stats = await SubscriberService(db_session).get_stats()
        assert stats.overview.total == 0
        assert stats.sources == []

    async def test_delete(
        self, db_session: AsyncSession, subscriber_factory: Callable[..., Any]
    ) -> None:
        subscriber = await subscriber_factory()
        service = SubscriberService(db_session)

        await service.delete_subscriber(subscriber.id)
        assert await service.subscribers.find_one(Subscriber.id == subscriber.id) is None

        with pytest.raises(NotFoundError):
            await service.delete_subscriber(subscriber.id)


class TestLifecycleScenario:
    async def test_unsubscribe_by_token_then_resubscribe(self, db_session: AsyncSession) -> None:
        service = SubscriberService(db_session)
        created, _ = await service.subscribe(_request("a@x.com"))
        original_token = created.unsubscribe_token

        unsubscribed = await service.unsubscribe(token=original_token)
        assert unsubscribed.is_active is False
        assert unsubscribed.unsubscribe_reason == "other"

        resubscribed, reactivated = await service.subscribe(_request("a@x.com"))
        assert reactivated is True
        assert resubscribed.is_active is True
        assert resubscribed.unsubscribe_token == original_token
