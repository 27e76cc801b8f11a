"""
Database Schemas for the Dating App

Each record model maps to a MongoDB collection (lowercased class name).
- User -> "user"
- Like -> "like"
- Message -> "message"
- Session -> "session"

Matches are not stored: two users match when each has liked the other.

Documents use snake_case field names; the JSON API speaks camelCase
(likerId, isMatch, imageUrl, ...) through the alias generator on ApiModel.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Gender = Literal["male", "female"]
MessageType = Literal["text", "image", "emoji"]
MESSAGE_TYPES = ("text", "image", "emoji")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users

class UserCreate(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    age: int = Field(..., ge=18, le=100)
    gender: Gender
    location: str = Field(..., min_length=1)
    bio: str = ""
    interests: List[str] = Field(default_factory=list)
    job: str = ""
    avatar: Optional[str] = None


class PublicUser(ApiModel):
    """A user as other clients see it: no password hash."""
    id: str
    email: str
    name: str
    age: int
    gender: Gender
    location: str
    bio: str = ""
    interests: List[str] = Field(default_factory=list)
    job: str = ""
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None


class User(PublicUser):
    password: str = Field(..., description="BCrypt password hash")

    def public(self) -> PublicUser:
        return PublicUser(**self.model_dump(exclude={"password"}))


class LoginRequest(ApiModel):
    email: Optional[str] = None
    password: Optional[str] = None


# Likes

class Like(ApiModel):
    id: str
    liker_id: str = Field(..., description="User ID who liked")
    liked_id: str = Field(..., description="User ID who was liked")
    created_at: datetime


class LikeRequest(ApiModel):
    liked_id: str = Field(..., min_length=1)


class LikeResult(ApiModel):
    like: Like
    is_match: bool


# Messages

class Message(ApiModel):
    id: str
    sender_id: str
    receiver_id: str
    text: Optional[str] = None
    type: MessageType = "text"
    image_url: Optional[str] = None
    created_at: datetime
    # insertion sequence, breaks created_at ties
    seq: int = Field(0, exclude=True)


class MessageRequest(ApiModel):
    receiver_id: str = Field(..., min_length=1)
    text: Optional[str] = None
    # plain str so an unknown type reaches InvalidMessage instead of a 422
    type: str = "text"
    image_url: Optional[str] = None


class UploadResult(ApiModel):
    image_url: str


# Sessions

class Session(BaseModel):
    token: str
    user_id: str
    created_at: datetime
    expires_at: datetime
