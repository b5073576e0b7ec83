# app/accounts.py
import hmac
import logging
from typing import Optional

from jose import JWTError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.auth import create_token_pair, verify_refresh_token
from app.config import Settings
from app.errors import (
    Conflict,
    ExpiredOrRevoked,
    InternalError,
    InvalidToken,
    NotFound,
    Unauthorized,
    ValidationError,
)
from app.media import MediaHost
from app.models import User
from app.schemas import LoginResult, TokenPair, UserOut

logger = logging.getLogger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


async def issue_session(db: AsyncSession, user: User, settings: Settings) -> TokenPair:
    """Mint a token pair and store the refresh half as the user's current one.

    Signing and persisting succeed or fail together: tokens are never handed
    out unless the refresh token was saved.
    """
    # rollback expires loaded instances, so `user` is not read after it
    user_id = user.id
    try:
        tokens = create_token_pair(user, settings)
        await crud.set_refresh_token(db, user_id, tokens.refreshToken)
    except (JWTError, SQLAlchemyError) as exc:
        await db.rollback()
        logger.error(f"Could not issue tokens for user {user_id}: {exc}")
        raise InternalError("Could not generate access and refresh tokens")
    return tokens


async def register(
    db: AsyncSession,
    media: MediaHost,
    fullname: Optional[str],
    email: Optional[str],
    username: Optional[str],
    password: Optional[str],
    avatar_path: Optional[str] = None,
    cover_image_path: Optional[str] = None,
) -> UserOut:
    if any(_blank(value) for value in (fullname, email, username, password)):
        raise ValidationError("All fields are compulsory")

    if await crud.find_user_by_username_or_email(db, username=username, email=email):
        raise Conflict("Username or email already exist")

    if not avatar_path:
        raise ValidationError("Avatar is required")

    avatar = await media.upload(avatar_path)
    if not avatar:
        raise InternalError("Issue uploading avatar")
    cover_image = await media.upload(cover_image_path)

    try:
        user = await crud.create_user(
            db,
            username=username,
            email=email,
            fullname=fullname,
            password=password,
            avatar=avatar["url"],
            cover_image=cover_image["url"] if cover_image else "",
        )
    except IntegrityError:
        # lost a race with a concurrent registration
        await db.rollback()
        raise Conflict("Username or email already exist")

    created = await crud.get_user_by_id(db, user.id)
    if not created:
        raise InternalError("Couldn't register user")

    logger.info(f"Registered user {created.id} ({created.username})")
    return UserOut.model_validate(created)


async def login(
    db: AsyncSession,
    settings: Settings,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> LoginResult:
    if _blank(username) and _blank(email):
        raise ValidationError("Please provide either username or email")
    if not password:
        raise ValidationError("Password field is empty")

    user = await crud.find_user_by_username_or_email(db, username=username, email=email)
    if not user:
        raise NotFound("Login failed: User not found")

    if not user.is_password_correct(password):
        raise Unauthorized("Incorrect password")

    tokens = await issue_session(db, user, settings)
    logger.info(f"User {user.id} logged in")
    return LoginResult(user=UserOut.model_validate(user), **tokens.model_dump())


async def logout(db: AsyncSession, user_id: int) -> None:
    await crud.set_refresh_token(db, user_id, None)
    logger.info(f"User {user_id} logged out")


async def refresh_session(
    db: AsyncSession, settings: Settings, presented: Optional[str]
) -> TokenPair:
    if not presented:
        raise Unauthorized("Unauthorized request")

    claims = verify_refresh_token(presented, settings)

    user = await crud.get_user_by_id(db, claims["id"])
    if not user:
        raise InvalidToken("Invalid refresh token")

    stored = await crud.get_refresh_token(db, user.id)
    if stored is None or not hmac.compare_digest(stored.encode(), presented.encode()):
        raise ExpiredOrRevoked("Refresh token is expired or used")

    return await issue_session(db, user, settings)


async def change_password(
    db: AsyncSession, user_id: int, old_password: Optional[str], new_password: Optional[str]
) -> None:
    if not old_password or not new_password:
        raise ValidationError("Old and new password are required")

    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise NotFound("User not found")

    # a wrong old password is a bad request here, not an auth failure
    if not user.is_password_correct(old_password):
        raise ValidationError("Invalid old password")

    await crud.set_password(db, user, new_password)
    logger.info(f"User {user_id} changed password")


async def update_account_details(
    db: AsyncSession,
    user_id: int,
    fullname: Optional[str],
    email: Optional[str],
    username: Optional[str],
) -> UserOut:
    if any(_blank(value) for value in (fullname, email, username)):
        raise ValidationError("All fields are required")

    # No uniqueness pre-check; the storage constraint is the only guard.
    try:
        user = await crud.update_user_fields(
            db,
            user_id,
            fullname=fullname.strip(),
            email=email.strip().lower(),
            username=username.strip().lower(),
        )
    except IntegrityError:
        await db.rollback()
        raise Conflict("Username or email already exist")

    if not user:
        raise NotFound("User not found")
    return UserOut.model_validate(user)


async def _update_media(
    db: AsyncSession, media: MediaHost, user_id: int, local_path: Optional[str], field: str, label: str
) -> UserOut:
    if not local_path:
        raise ValidationError(f"{label} file is missing")

    uploaded = await media.upload(local_path)
    if not uploaded or not uploaded.get("url"):
        raise InternalError(f"Error while uploading {label.lower()}")

    user = await crud.update_user_fields(db, user_id, **{field: uploaded["url"]})
    if not user:
        raise NotFound("User not found")
    return UserOut.model_validate(user)


async def update_avatar(
    db: AsyncSession, media: MediaHost, user_id: int, local_path: Optional[str]
) -> UserOut:
    return await _update_media(db, media, user_id, local_path, "avatar", "Avatar")


async def update_cover_image(
    db: AsyncSession, media: MediaHost, user_id: int, local_path: Optional[str]
) -> UserOut:
    return await _update_media(db, media, user_id, local_path, "cover_image", "Cover image")
