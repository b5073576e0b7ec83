# app/channels.py
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app import crud
from app.errors import Conflict, InternalError, NotFound, ValidationError
from app.models import Subscription, User
from app.schemas import ChannelProfile, SubscriptionOut, WatchedVideo

logger = logging.getLogger(__name__)


async def subscribe(db: AsyncSession, subscriber_id: int, channel_username: Optional[str]) -> SubscriptionOut:
    if not channel_username or not channel_username.strip():
        raise ValidationError("Channel username is required")

    channel = await crud.get_user_by_username(db, channel_username)
    if not channel:
        raise NotFound("Channel does not exist")

    if await crud.get_subscription(db, subscriber_id, channel.id):
        raise Conflict("Already subscribed to this channel")

    try:
        await crud.create_subscription(db, subscriber_id, channel.id)
    except IntegrityError:
        # a concurrent subscribe got there first
        await db.rollback()
        raise Conflict("Already subscribed to this channel")

    created = await crud.get_subscription(db, subscriber_id, channel.id)
    if not created:
        raise InternalError("Could not subscribe to channel")

    logger.info(f"User {subscriber_id} subscribed to channel {channel.id}")
    return SubscriptionOut.model_validate(created)


async def get_channel_profile(
    db: AsyncSession, username: Optional[str], viewer_id: Optional[int]
) -> ChannelProfile:
    """Public profile of a channel plus its subscription counts, in one query."""
    if not username or not username.strip():
        raise ValidationError("Username is missing")

    subscribers_count = (
        select(func.count(Subscription.id))
        .where(Subscription.channel_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    subscribed_to_count = (
        select(func.count(Subscription.id))
        .where(Subscription.subscriber_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    is_subscribed = (
        select(Subscription.id)
        .where(Subscription.channel_id == User.id, Subscription.subscriber_id == viewer_id)
        .correlate(User)
        .exists()
    )

    stmt = select(
        User.id,
        User.username,
        User.fullname,
        User.avatar,
        User.cover_image,
        subscribers_count.label("subscribers_count"),
        subscribed_to_count.label("subscribed_to_count"),
        is_subscribed.label("is_subscribed"),
    ).where(User.username == username.strip().lower())

    row = (await db.execute(stmt)).first()
    if row is None:
        raise NotFound("Channel does not exist")

    return ChannelProfile(
        id=row.id,
        username=row.username,
        fullname=row.fullname,
        avatar=row.avatar or "",
        coverImage=row.cover_image or "",
        subscribersCount=row.subscribers_count,
        channelsSubscribedToCount=row.subscribed_to_count,
        isSubscribed=bool(row.is_subscribed),
    )


async def get_watch_history(db: AsyncSession, user_id: int) -> List[WatchedVideo]:
    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise InternalError("Could not load watch history")

    videos = await crud.get_watch_history_videos(db, user_id)
    return [WatchedVideo.model_validate(video) for video in videos]
