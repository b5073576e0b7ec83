from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.models import Subscription, User, Video, WatchHistoryEntry
from app.schemas import VideoCreate


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalars().first()


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username.strip().lower()))
    return result.scalars().first()


async def find_user_by_username_or_email(
    db: AsyncSession, username: Optional[str] = None, email: Optional[str] = None
) -> Optional[User]:
    conditions = []
    if username:
        conditions.append(User.username == username.strip().lower())
    if email:
        conditions.append(User.email == email.strip().lower())
    if not conditions:
        return None
    result = await db.execute(select(User).where(or_(*conditions)))
    return result.scalars().first()


async def create_user(
    db: AsyncSession,
    username: str,
    email: str,
    fullname: str,
    password: str,
    avatar: str,
    cover_image: str = "",
) -> User:
    db_user = User(
        username=username.strip().lower(),
        email=email.strip().lower(),
        fullname=fullname.strip(),
        avatar=avatar,
        cover_image=cover_image or "",
    )
    db_user.set_password(password)
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)
    return db_user


async def update_user_fields(db: AsyncSession, user_id: int, **fields) -> Optional[User]:
    """Write ``fields`` in a single UPDATE and return the fresh row."""
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(**fields)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    db.expire_all()
    return await get_user_by_id(db, user_id)


async def set_password(db: AsyncSession, user: User, new_password: str) -> None:
    user.set_password(new_password)
    await db.commit()


# --- session store: one current refresh token per user ---

async def set_refresh_token(db: AsyncSession, user_id: int, token: Optional[str]) -> None:
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(refresh_token=token)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def get_refresh_token(db: AsyncSession, user_id: int) -> Optional[str]:
    result = await db.execute(select(User.refresh_token).where(User.id == user_id))
    return result.scalars().first()


# --- subscriptions ---

async def get_subscription(
    db: AsyncSession, subscriber_id: int, channel_id: int
) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription).where(
            Subscription.subscriber_id == subscriber_id,
            Subscription.channel_id == channel_id,
        )
    )
    return result.scalars().first()


async def create_subscription(db: AsyncSession, subscriber_id: int, channel_id: int) -> Subscription:
    db_subscription = Subscription(subscriber_id=subscriber_id, channel_id=channel_id)
    db.add(db_subscription)
    await db.commit()
    await db.refresh(db_subscription)
    return db_subscription


# --- videos and watch history ---

async def create_video(db: AsyncSession, video: VideoCreate) -> Video:
    db_video = Video(**video.model_dump())
    db.add(db_video)
    await db.commit()
    await db.refresh(db_video)
    return db_video


async def add_to_watch_history(db: AsyncSession, user_id: int, video_id: int) -> WatchHistoryEntry:
    """Append a video to a user's history; the next position follows the last one.

    No route records views, so this is the write path for seeding data and tests.
    """
    result = await db.execute(
        select(WatchHistoryEntry.position)
        .where(WatchHistoryEntry.user_id == user_id)
        .order_by(WatchHistoryEntry.position.desc())
        .limit(1)
    )
    last = result.scalars().first()
    entry = WatchHistoryEntry(
        user_id=user_id, video_id=video_id, position=0 if last is None else last + 1
    )
    db.add(entry)
    await db.commit()
    return entry


async def get_watch_history_videos(db: AsyncSession, user_id: int) -> List[Video]:
    result = await db.execute(
        select(Video)
        .join(WatchHistoryEntry, WatchHistoryEntry.video_id == Video.id)
        .where(WatchHistoryEntry.user_id == user_id)
        .order_by(WatchHistoryEntry.position)
        .options(selectinload(Video.owner))
    )
    # the same video may appear more than once in the history
    return list(result.scalars().all())
