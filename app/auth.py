# app/auth.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Cookie, Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.config import CookieOptions, Settings, get_settings
from app.database import get_db
from app.errors import InvalidToken, Unauthorized
from app.models import User
from app.schemas import TokenPair, UserOut

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)


def _encode(claims: dict, secret: str, algorithm: str, expires_delta: timedelta) -> str:
    to_encode = claims.copy()
    now = datetime.now(timezone.utc)
    # jti keeps two tokens minted in the same second textually distinct
    to_encode.update({"iat": now, "exp": now + expires_delta, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def create_access_token(user: User, settings: Settings) -> str:
    claims = {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "fullname": user.fullname,
    }
    return _encode(
        claims,
        settings.access_token_secret,
        settings.jwt_algorithm,
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user: User, settings: Settings) -> str:
    return _encode(
        {"id": user.id},
        settings.refresh_token_secret,
        settings.jwt_algorithm,
        timedelta(days=settings.refresh_token_expire_days),
    )


def create_token_pair(user: User, settings: Settings) -> TokenPair:
    return TokenPair(
        accessToken=create_access_token(user, settings),
        refreshToken=create_refresh_token(user, settings),
    )


def _decode(token: str, secret: str, algorithm: str) -> dict:
    claims = jwt.decode(token, secret, algorithms=[algorithm])
    if not isinstance(claims.get("id"), int):
        raise JWTError("token carries no user id")
    return claims


def decode_access_token(token: str, settings: Settings) -> dict:
    try:
        return _decode(token, settings.access_token_secret, settings.jwt_algorithm)
    except JWTError:
        raise Unauthorized("Invalid access token")


def verify_refresh_token(token: str, settings: Settings) -> dict:
    """Return the refresh token's claims.

    Expired, malformed and badly signed tokens all fail the same way so
    callers cannot probe which check rejected them.
    """
    try:
        return _decode(token, settings.refresh_token_secret, settings.jwt_algorithm)
    except JWTError:
        raise InvalidToken("Invalid refresh token")


def set_session_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    options: CookieOptions = settings.cookies
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.accessToken,
        max_age=settings.access_token_expire_minutes * 60,
        **options.model_dump(),
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refreshToken,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        **options.model_dump(),
    )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    options = settings.cookies.model_dump()
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)


async def get_current_user(
    request: Request,
    bearer_token: Optional[str] = Depends(oauth2_scheme),
    access_cookie: Optional[str] = Cookie(None, alias=ACCESS_COOKIE),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> UserOut:
    """Resolve the acting user from the access token.

    The Authorization header wins over the cookie. Access tokens are
    stateless: the stored refresh token is never consulted here.
    """
    token = bearer_token or access_cookie
    if not token:
        raise Unauthorized("Unauthorized request")

    claims = decode_access_token(token, settings)
    user = await crud.get_user_by_id(db, claims["id"])
    if not user:
        logger.info(f"Access token for missing user {claims['id']}")
        raise Unauthorized("Invalid access token")

    identity = UserOut.model_validate(user)
    request.state.user = identity
    return identity
