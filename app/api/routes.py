import logging
from contextlib import contextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.gemini import DescriptionGenerator
from app.api.deps import (
    get_account_service,
    get_comment_service,
    get_description_generator,
    get_post_service,
)
from app.auth.dependencies import get_optional_author, get_session_token
from app.auth.jwt import verify_token
from app.blog.exceptions import StoreFailure, Unauthorized, UpstreamFailure
from app.blog.schemas import (
    AuthorRef,
    CommentCreate,
    CommentDelete,
    CommentRecord,
    DescriptionRequest,
    HealthResponse,
    MessageResponse,
    PostDelete,
    PostListResponse,
    PostRecord,
    SigninRequest,
    SignupRequest,
)
from app.blog.service import AccountService, CommentService, ImageFile, PostService
from app.config import get_settings
from app.database import get_db, ping_db

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter()

SUCCESS = {"message": "success"}


@contextmanager
def on_store_failure(message: str):
    """Re-label a StoreFailure with the route's public message"""
    try:
        yield
    except StoreFailure as exc:
        raise StoreFailure(message) from exc


# ----- Health Check -----
@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint."""
    db_status = "healthy" if await ping_db(db) else "unhealthy"
    return HealthResponse(
        status="ok" if db_status == "healthy" else "degraded",
        database=db_status,
    )


# ----- Session Endpoints -----
@router.get("/get-token")
async def get_token(token: Optional[str] = Depends(get_session_token)):
    """Return the claims of the session cookie."""
    if not token:
        return JSONResponse(status_code=201, content={"token": None})

    payload = verify_token(token)
    if payload is None:
        raise Unauthorized("Invalid token")
    return {"token": payload}


@router.get("/logout", response_model=MessageResponse)
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(settings.COOKIE_NAME)
    return SUCCESS


@router.post("/signup", response_model=MessageResponse)
async def signup(
    request: SignupRequest,
    account_service: AccountService = Depends(get_account_service),
):
    """Register a new user."""
    with on_store_failure("Internal Server Error on signup"):
        await account_service.signup(request)
    return SUCCESS


@router.post("/signin", response_model=MessageResponse)
async def signin(
    request: SigninRequest,
    response: Response,
    account_service: AccountService = Depends(get_account_service),
):
    """Authenticate and set the session cookie."""
    with on_store_failure("Internal Server Error on signin"):
        _, token = await account_service.signin(request)

    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return SUCCESS


# ----- Post Endpoints -----
@router.post("/create-post", response_model=MessageResponse)
async def create_post(
    title: Optional[str] = Form(None),
    discription: Optional[str] = Form(None),
    user_id: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    post_service: PostService = Depends(get_post_service),
):
    """Create a post with an uploaded image."""
    image = None
    if photo is not None:
        # One byte past the limit is enough to reject an oversized file
        content = await photo.read(settings.MAX_UPLOAD_BYTES + 1)
        image = ImageFile(
            filename=photo.filename or "upload",
            content_type=photo.content_type,
            content=content,
        )

    with on_store_failure("Internal Server Error on create post"):
        await post_service.create_post(
            title=title,
            description=discription,
            author=AuthorRef(id=user_id or "", name=name, username=username),
            date=date,
            image=image,
        )
    return SUCCESS


@router.get("/get-all-posts", response_model=PostListResponse)
async def get_all_posts(post_service: PostService = Depends(get_post_service)):
    """List every post."""
    with on_store_failure("Internal Server Error on get all post"):
        posts = await post_service.list_posts()
    return PostListResponse(posts=posts)


@router.get("/get-post/{post_id}", response_model=PostRecord)
async def get_post(post_id: str, post_service: PostService = Depends(get_post_service)):
    """Get a single post with its embedded comment summaries."""
    with on_store_failure("Internal Server Error on get post"):
        return await post_service.get_post(post_id)


@router.get("/get-all-userPosts/{user_id}", response_model=List[PostRecord])
async def get_user_posts(user_id: str, post_service: PostService = Depends(get_post_service)):
    """Get posts by a specific user."""
    with on_store_failure("Internal Server Error on get all user post"):
        return await post_service.posts_for_author(user_id)


@router.post("/delete-post", response_model=MessageResponse)
async def delete_post(
    request: PostDelete,
    post_service: PostService = Depends(get_post_service),
):
    """Delete a post and, best effort, its comments."""
    with on_store_failure("Internal Server Error on delete post"):
        await post_service.delete_post(request.id)
    return SUCCESS


# ----- Comment Endpoints -----
@router.post("/comment-on-post", response_model=MessageResponse)
async def comment_on_post(
    request: CommentCreate,
    author: Optional[AuthorRef] = Depends(get_optional_author),
    comment_service: CommentService = Depends(get_comment_service),
):
    """Add a comment and append its summary to the parent post."""
    with on_store_failure("Internal Server Error on comment"):
        await comment_service.create_comment(request, author=author)
    return SUCCESS


@router.get("/comments/{user_id}", response_model=List[CommentRecord])
async def get_comments(
    user_id: str,
    comment_service: CommentService = Depends(get_comment_service),
):
    """Get every comment written by a user."""
    with on_store_failure("Internal Server Error on get comments"):
        return await comment_service.comments_for_author(user_id)


@router.post("/delete-comment", response_model=MessageResponse)
async def delete_comment(
    request: CommentDelete,
    comment_service: CommentService = Depends(get_comment_service),
):
    """Remove a comment's summary from its post, then delete the comment."""
    with on_store_failure("Internal Server Error on delete comment"):
        await comment_service.delete_comment(request.comment_id, request.post_id)
    return SUCCESS


# ----- AI Endpoints -----
@router.post("/ai-discription", response_model=MessageResponse)
async def ai_description(
    request: DescriptionRequest,
    generator: Optional[DescriptionGenerator] = Depends(get_description_generator),
):
    """Generate a post description from its title."""
    if generator is None:
        raise UpstreamFailure("Description generation is not configured")
    text = await generator.generate(request.title)
    return MessageResponse(message=text)
