# app/schemas.py
from datetime import datetime
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    statusCode: int
    data: Any = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def ok(cls, data: Any = None, message: str = "Success", status_code: int = 200):
        return cls(statusCode=status_code, data=jsonable_encoder(data), message=message, success=status_code < 400)


class UserOut(BaseModel):
    """User as returned to clients: never carries password or refresh token."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    username: str
    email: str
    fullname: str
    avatar: str = ""
    cover_image: str = Field("", serialization_alias="coverImage")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    refreshToken: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    oldPassword: Optional[str] = None
    newPassword: Optional[str] = None


class UpdateDetailsRequest(BaseModel):
    fullname: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None


class TokenPair(BaseModel):
    accessToken: str
    refreshToken: str


class LoginResult(TokenPair):
    user: UserOut


class ChannelProfile(BaseModel):
    id: int
    username: str
    fullname: str
    avatar: str
    coverImage: str
    subscribersCount: int
    channelsSubscribedToCount: int
    isSubscribed: bool


class VideoOwner(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fullname: str
    username: str
    avatar: str


class WatchedVideo(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    video_file: str = Field(serialization_alias="videoFile")
    thumbnail: str
    title: str
    description: Optional[str] = ""
    duration: float = 0
    views: int = 0
    is_published: bool = Field(True, serialization_alias="isPublished")
    owner: VideoOwner


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscriber_id: int
    channel_id: int


class VideoCreate(BaseModel):
    video_file: str
    thumbnail: str
    title: str
    description: str = ""
    duration: float = 0
    owner_id: int
