# app/routes.py
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app import accounts, channels, schemas
from app.auth import (
    REFRESH_COOKIE,
    clear_session_cookies,
    get_current_user,
    set_session_cookies,
)
from app.config import Settings, get_settings
from app.database import get_db
from app.media import MediaHost, discard_uploads, get_media_host, save_upload
from app.schemas import ApiResponse, UserOut

router = APIRouter(prefix="/api/v1/users", tags=["users"])


# --- Account Routes ---
@router.post("/register", response_model=ApiResponse)
async def register(
    fullname: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    db: AsyncSession = Depends(get_db),
    media: MediaHost = Depends(get_media_host),
    settings: Settings = Depends(get_settings),
):
    avatar_path = await save_upload(avatar, settings.upload_dir)
    cover_image_path = await save_upload(cover_image, settings.upload_dir)
    try:
        user = await accounts.register(
            db, media, fullname, email, username, password, avatar_path, cover_image_path
        )
    finally:
        discard_uploads(avatar_path, cover_image_path)
    return ApiResponse.ok(user, "User Registered Successfully")


# POST is the documented verb; GET stays for older clients that send a body.
@router.api_route("/login", methods=["POST", "GET"], response_model=ApiResponse)
async def login(
    payload: schemas.LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    result = await accounts.login(db, settings, payload.username, payload.email, payload.password)
    set_session_cookies(response, result, settings)
    return ApiResponse.ok(result, "Logged in successfully")


@router.post("/logout", response_model=ApiResponse)
async def logout(
    response: Response,
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    await accounts.logout(db, current_user.id)
    clear_session_cookies(response, settings)
    return ApiResponse.ok({}, "User logged out")


@router.post("/refresh-token", response_model=ApiResponse)
async def refresh_token(
    response: Response,
    payload: Optional[schemas.RefreshTokenRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    presented = refresh_cookie or (payload.refreshToken if payload else None)
    tokens = await accounts.refresh_session(db, settings, presented)
    set_session_cookies(response, tokens, settings)
    return ApiResponse.ok(tokens, "Access token refreshed")


@router.post("/change-password", response_model=ApiResponse)
async def change_password(
    payload: schemas.ChangePasswordRequest,
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await accounts.change_password(db, current_user.id, payload.oldPassword, payload.newPassword)
    return ApiResponse.ok({}, "Password changed successfully")


@router.get("/current-user", response_model=ApiResponse)
async def current_user(current_user: UserOut = Depends(get_current_user)):
    return ApiResponse.ok(current_user, "Current user fetched successfully")


@router.post("/update-details", response_model=ApiResponse)
async def update_details(
    payload: schemas.UpdateDetailsRequest,
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await accounts.update_account_details(
        db, current_user.id, payload.fullname, payload.email, payload.username
    )
    return ApiResponse.ok(user, "Account details updated successfully")


@router.post("/update-avatar", response_model=ApiResponse)
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    media: MediaHost = Depends(get_media_host),
    settings: Settings = Depends(get_settings),
):
    local_path = await save_upload(avatar, settings.upload_dir)
    try:
        user = await accounts.update_avatar(db, media, current_user.id, local_path)
    finally:
        discard_uploads(local_path)
    return ApiResponse.ok(user, "Avatar updated successfully")


@router.post("/update-cover-image", response_model=ApiResponse)
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    media: MediaHost = Depends(get_media_host),
    settings: Settings = Depends(get_settings),
):
    local_path = await save_upload(cover_image, settings.upload_dir)
    try:
        user = await accounts.update_cover_image(db, media, current_user.id, local_path)
    finally:
        discard_uploads(local_path)
    return ApiResponse.ok(user, "Cover image updated successfully")


# --- Channel Routes ---
@router.post("/c/{username}/subscribe", response_model=ApiResponse)
async def subscribe(
    username: str,
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await channels.subscribe(db, current_user.id, username)
    return ApiResponse.ok(subscription, "Subscribed successfully")


@router.get("/c/{username}", response_model=ApiResponse)
async def channel_profile(
    username: str,
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await channels.get_channel_profile(db, username, current_user.id)
    return ApiResponse.ok(profile, "User channel fetched successfully")


@router.get("/history", response_model=ApiResponse)
async def watch_history(
    current_user: UserOut = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    history = await channels.get_watch_history(db, current_user.id)
    return ApiResponse.ok(history, "Watch history fetched successfully")
