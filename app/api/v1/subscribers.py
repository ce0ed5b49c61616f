"""Newsletter subscriber API endpoints.

Public endpoints serve the subscribe form and the links in outgoing emails;
listing, stats, deletion and engagement tracking are admin only.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, Request, Response, status

from app.core.config import settings
from app.core.deps import AdminUser, OptionalUser, Subscribers
from app.core.exceptions import NotFoundError
from app.core.rate_limit import get_client_ip, limiter
from app.models.subscriber import Frequency, SubscriberSource
from app.models.user import UserRole
from app.schemas.common import MessageResponse, Pagination
from app.schemas.subscriber import (
    ActiveSubscribersResponse,
    PreferencesResponse,
    SubscribeRequest,
    SubscribeResponse,
    SubscriberActionResponse,
    SubscriberDetailResponse,
    SubscriberFilters,
    SubscriberListResponse,
    SubscriberResponse,
    SubscriberStats,
    SubscriberSummary,
    TrackingEvent,
    UpdatePreferencesRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _header(request: Request, name: str, max_length: int) -> str | None:
    value = request.headers.get(name)
    return value[:max_length] if value else None


# === Admin read side ===


@router.get(
    "",
    response_model=SubscriberListResponse,
    summary="List subscribers",
    description="Filter by state, source or a search term; newest first.",
)
async def list_subscribers(
    _admin: AdminUser,
    service: Subscribers,
    active: bool | None = Query(None, description="Filter by active state"),
    verified: bool | None = Query(None, description="Filter by email verification"),
    source: SubscriberSource | None = Query(None, description="Filter by sign-up source"),
    search: str | None = Query(None, max_length=100, description="Email or name contains"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> SubscriberListResponse:
    filters = SubscriberFilters(
        active=active,
        verified=verified,
        source=source,
        search=search,
        page=page,
        limit=limit,
    )
    items, total = await service.list_subscribers(filters)
    return SubscriberListResponse(
        subscribers=[SubscriberResponse.model_validate(s) for s in items],
        pagination=Pagination.build(filters.page, filters.limit, total),
    )


@router.get("/stats", response_model=SubscriberStats, summary="Subscriber statistics")
async def get_stats(_admin: AdminUser, service: Subscribers) -> SubscriberStats:
    return await service.get_stats()


@router.get(
    "/active",
    response_model=ActiveSubscribersResponse,
    summary="Mailing list",
    description="Active, verified subscribers, optionally for one delivery frequency.",
)
async def list_active_subscribers(
    _admin: AdminUser,
    service: Subscribers,
    frequency: Frequency | None = Query(None, description="Delivery frequency"),
) -> ActiveSubscribersResponse:
    items = await service.get_active_subscribers(frequency.value if frequency else None)
    return ActiveSubscribersResponse(
        count=len(items),
        subscribers=[SubscriberResponse.model_validate(s) for s in items],
    )


# === Public lifecycle ===


@router.post(
    "",
    response_model=SubscribeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Subscribe",
    description="""
    Subscribe an email address.

    A previously unsubscribed address is reactivated (200) with its
    verification state and preferences intact. An active address is a 409.
    """,
)
@limiter.limit(settings.rate_limit_subscribe)
async def subscribe(
    request: Request,
    response: Response,
    data: SubscribeRequest,
    service: Subscribers,
) -> SubscribeResponse:
    subscriber, reactivated = await service.subscribe(
        data,
        referrer=_header(request, "referer", 2048),
        user_agent=_header(request, "user-agent", 512),
        ip_address=get_client_ip(request)[:45],
    )
    if reactivated:
        response.status_code = status.HTTP_200_OK
        message = "Welcome back! Your subscription has been reactivated."
    else:
        message = "Please check your email to verify your subscription."
    return SubscribeResponse(
        message=message,
        reactivated=reactivated,
        subscriber=SubscriberSummary.model_validate(subscriber),
    )


@router.get(
    "/verify/{token}",
    response_model=SubscriberActionResponse,
    summary="Verify email",
    description="Consume a verification token. Each token works once.",
)
async def verify_email(token: str, service: Subscribers) -> SubscriberActionResponse:
    subscriber = await service.verify_email(token)
    return SubscriberActionResponse(
        message="Email verified successfully",
        subscriber=SubscriberSummary.model_validate(subscriber),
    )


@router.post(
    "/{email}/resend-verification",
    response_model=MessageResponse,
    summary="Resend verification",
    description="Same response whether or not the address awaits verification.",
)
@limiter.limit(settings.rate_limit_subscribe)
async def resend_verification(
    request: Request,  # noqa: ARG001 - required by slowapi
    email: str,
    service: Subscribers,
) -> MessageResponse:
    try:
        subscriber = await service.regenerate_verification_token(email)
    except NotFoundError:
        logger.info("Verification resend skipped: no unverified subscriber")
    else:
        logger.info("Verification token reissued for subscriber %s", subscriber.id)
    return MessageResponse(
        message="If this address is awaiting verification, a new email has been sent"
    )


@router.delete(
    "/{email}",
    response_model=SubscriberActionResponse,
    summary="Unsubscribe",
    description="Unsubscribe by the token from an email link, or by address.",
)
async def unsubscribe(
    email: str,
    service: Subscribers,
    token: str | None = Query(None, description="Unsubscribe token"),
    reason: str | None = Query(None, description="Why the subscriber left"),
) -> SubscriberActionResponse:
    subscriber = await service.unsubscribe(email=email, token=token, reason=reason)
    return SubscriberActionResponse(
        message="Successfully unsubscribed",
        subscriber=SubscriberSummary.model_validate(subscriber),
    )


@router.put(
    "/{email}/preferences",
    response_model=PreferencesResponse,
    summary="Update preferences",
    description="Authorised by the unsubscribe token, or by an admin bearer token.",
)
async def update_preferences(
    email: str,
    data: UpdatePreferencesRequest,
    user: OptionalUser,
    service: Subscribers,
) -> PreferencesResponse:
    subscriber = await service.update_preferences(
        data.preferences.changes(),
        email=email,
        token=data.token,
        is_admin=user is not None and user.role == UserRole.ADMIN,
    )
    return PreferencesResponse.model_validate({"preferences": subscriber.preferences})


# === Admin write side ===


@router.delete(
    "/id/{subscriber_id}",
    response_model=MessageResponse,
    summary="Delete subscriber",
)
async def delete_subscriber(
    subscriber_id: UUID,
    _admin: AdminUser,
    service: Subscribers,
) -> MessageResponse:
    await service.delete_subscriber(subscriber_id)
    return MessageResponse(message="Subscriber deleted")


@router.post(
    "/id/{subscriber_id}/track/{event}",
    response_model=SubscriberDetailResponse,
    summary="Record engagement",
    description="Record that an email was sent, opened, or a link clicked.",
)
async def track_event(
    subscriber_id: UUID,
    event: TrackingEvent,
    _admin: AdminUser,
    service: Subscribers,
) -> SubscriberDetailResponse:
    subscriber = await service.track(subscriber_id, event)
    return SubscriberDetailResponse(subscriber=SubscriberResponse.model_validate(subscriber))
