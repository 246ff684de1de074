from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.gemini import DescriptionGenerator
from app.blog.service import AccountService, CommentService, PostService
from app.blog.stores import CommentStore, PostStore, UserStore
from app.config import get_settings
from app.database import get_db
from app.media.uploader import MediaUploader

settings = get_settings()


async def get_comment_store(db: AsyncSession = Depends(get_db)) -> CommentStore:
    """Dependency for CommentStore."""
    return CommentStore(db)


async def get_post_store(db: AsyncSession = Depends(get_db)) -> PostStore:
    """Dependency for PostStore."""
    return PostStore(db)


async def get_user_store(db: AsyncSession = Depends(get_db)) -> UserStore:
    """Dependency for UserStore."""
    return UserStore(db)


def get_media_uploader(request: Request) -> Optional[MediaUploader]:
    """Process-scoped uploader created in the lifespan."""
    return getattr(request.app.state, "media_uploader", None)


def get_description_generator(request: Request) -> Optional[DescriptionGenerator]:
    """Process-scoped generator created in the lifespan."""
    return getattr(request.app.state, "description_generator", None)


async def get_comment_service(
    comments: CommentStore = Depends(get_comment_store),
    posts: PostStore = Depends(get_post_store),
) -> CommentService:
    """Dependency for CommentService."""
    return CommentService(comments, posts)


async def get_post_service(
    posts: PostStore = Depends(get_post_store),
    comments: CommentStore = Depends(get_comment_store),
    users: UserStore = Depends(get_user_store),
    uploader: Optional[MediaUploader] = Depends(get_media_uploader),
) -> PostService:
    """Dependency for PostService."""
    return PostService(
        posts,
        comments,
        users,
        uploader=uploader,
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
    )


async def get_account_service(users: UserStore = Depends(get_user_store)) -> AccountService:
    """Dependency for AccountService."""
    return AccountService(users)
