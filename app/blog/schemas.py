from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

# Aliases keep the JSON field names the web client already reads
# (`_id`, `discription`, `commentID`, ...). Stores build records by field name.


# ============ Store Records ============

class AuthorRef(BaseModel):
    """Denormalized author reference carried by posts and comments"""
    id: str
    name: Optional[str] = None
    username: Optional[str] = None


class CommentSummary(BaseModel):
    """Lightweight copy of a comment embedded in its parent post"""
    comment_id: str = Field(..., alias="commentID")
    comment: str
    date: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None

    class Config:
        populate_by_name = True


class CommentRecord(BaseModel):
    id: str = Field(..., alias="_id")
    comment: str
    user_id: str = Field(..., alias="user")
    username: Optional[str] = None
    name: Optional[str] = None
    post_id: str = Field(..., alias="post")
    date: Optional[str] = None
    title: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True

    def summary(self) -> CommentSummary:
        return CommentSummary(
            comment_id=self.id,
            comment=self.comment,
            date=self.date,
            username=self.username,
            name=self.name,
        )


class PostRecord(BaseModel):
    id: str = Field(..., alias="_id")
    title: str
    description: str = Field(..., alias="discription")
    user_id: str = Field(..., alias="user")
    name: str
    username: str
    date: str
    image_url: str = Field(..., alias="imageID")
    image_public_id: Optional[str] = Field(None, alias="imagePublicID")
    comments: List[CommentSummary] = []
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True

    def has_comment(self, comment_id: str) -> bool:
        return any(s.comment_id == comment_id for s in self.comments)


class UserRecord(BaseModel):
    id: str
    name: str
    username: str
    email: str
    hashed_password: str
    posts: List[str] = []
    created_at: datetime


class CommentOutcome(BaseModel):
    """Result of a fully applied comment creation"""
    comment_id: str
    comment_count: int


class ReconcileReport(BaseModel):
    dangling_summaries_removed: int = 0
    missing_summaries_appended: int = 0
    orphans_deleted: int = 0

    @property
    def total(self) -> int:
        return (
            self.dangling_summaries_removed
            + self.missing_summaries_appended
            + self.orphans_deleted
        )


# ============ Request Schemas ============

class CommentCreate(BaseModel):
    # Every field is optional here; the coordinator decides what is missing
    comment: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userID")
    username: Optional[str] = None
    name: Optional[str] = None
    post_id: Optional[str] = Field(None, alias="postID")
    date: Optional[str] = None
    title: Optional[str] = None

    class Config:
        populate_by_name = True


class CommentDelete(BaseModel):
    comment_id: Optional[str] = Field(None, alias="CommentID")
    post_id: Optional[str] = Field(None, alias="PostID")

    class Config:
        populate_by_name = True


class PostDelete(BaseModel):
    id: Optional[str] = None


class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=4)


class SigninRequest(BaseModel):
    # Normalised like SignupRequest.email
    email: EmailStr
    password: str


class DescriptionRequest(BaseModel):
    title: Optional[str] = None


# ============ Response Schemas ============

class MessageResponse(BaseModel):
    message: str


class PostListResponse(BaseModel):
    posts: List[PostRecord]


class TokenResponse(BaseModel):
    token: Optional[dict] = None


class HealthResponse(BaseModel):
    status: str
    database: str
