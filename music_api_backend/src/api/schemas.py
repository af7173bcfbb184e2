"""
Pydantic models (request/response shapes) for API endpoints.

Wire names are camelCase (`phoneNumber`, `trackIds`, `_id`); Python attributes
are snake_case. Unknown request fields, including any `userId`, are ignored.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _ResponseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UserRegisterRequest(_RequestModel):
    username: Optional[str] = Field(None, description="Unique username, 3-20 chars of [A-Za-z0-9_].")
    email: Optional[EmailStr] = Field(None, description="Unique email address.")
    password: Optional[str] = Field(None, description="Password, 8-30 chars.")
    phone_number: Optional[str] = Field(None, alias="phoneNumber", description="Optional phone number.")
    birth_date: Optional[date] = Field(None, alias="birthDate", description="Birth date (YYYY-MM-DD).")
    gender: Optional[str] = Field(None, description="One of male, female, other, prefer_not_to_say.")


class UserLoginRequest(_RequestModel):
    email: Optional[str] = Field(None, description="Registered email address.")
    password: Optional[str] = Field(None, description="Account password.")


class UserUpdateRequest(_RequestModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    birth_date: Optional[date] = Field(None, alias="birthDate")
    gender: Optional[str] = None


class RegisteredUserResponse(_ResponseModel):
    id: uuid.UUID = Field(..., alias="_id", description="Created user id.")
    email: str = Field(..., description="Registered email address.")


class AccessTokenResponse(_ResponseModel):
    access_token: str = Field(..., alias="accessToken", description="JWT bearer token.")


class UserResponse(_ResponseModel):
    id: uuid.UUID = Field(..., alias="_id")
    username: str
    email: str
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    birth_date: Optional[date] = Field(None, alias="birthDate")
    gender: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class TrackCreateRequest(_RequestModel):
    title: Optional[str] = Field(None, description="Track title (max 100 chars).")
    description: Optional[str] = Field(None, description="Track description (max 500 chars).")
    genre: Optional[str] = Field(None, description="Genre (max 50 chars).")
    tags: Optional[List[str]] = Field(None, description="Free-form tags.")


class TrackUpdateRequest(TrackCreateRequest):
    pass


class TrackResponse(_ResponseModel):
    id: uuid.UUID = Field(..., alias="_id")
    user_id: uuid.UUID = Field(..., alias="userId", description="Owning user id.")
    title: Optional[str] = None
    description: Optional[str] = None
    genre: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class PlaylistCreateRequest(_RequestModel):
    title: Optional[str] = Field(None, description="Playlist title (max 100 chars).")
    description: Optional[str] = Field(None, description="Playlist description (max 500 chars).")
    tags: Optional[List[str]] = Field(None, description="Free-form tags.")
    track_ids: Optional[List[str]] = Field(None, alias="trackIds", description="Ordered track ids.")


class PlaylistUpdateRequest(PlaylistCreateRequest):
    pass


class PlaylistResponse(_ResponseModel):
    id: uuid.UUID = Field(..., alias="_id")
    user_id: uuid.UUID = Field(..., alias="userId", description="Owning user id.")
    title: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    track_ids: List[str] = Field(default_factory=list, alias="trackIds")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class MessageResponse(BaseModel):
    message: str
