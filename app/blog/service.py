import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from app.auth.jwt import create_access_token
from app.auth.password import hash_password, verify_password
from app.blog.exceptions import (
    NotFound,
    PartialWriteFailure,
    StoreFailure,
    Unauthorized,
    UpstreamFailure,
    ValidationError,
)
from app.blog.schemas import (
    AuthorRef,
    CommentCreate,
    CommentOutcome,
    CommentRecord,
    PostRecord,
    SigninRequest,
    SignupRequest,
    UserRecord,
)
from app.blog.stores import CommentStore, PostStore, UserStore
from app.media.uploader import MediaUploader

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_username(at: datetime) -> str:
    """Username assigned at signup: `User_` followed by epoch milliseconds of `at`."""
    return f"User_{int(at.timestamp() * 1000)}"


class CommentService:
    """
    Keeps the comments table and each post's embedded summaries in step.

    The comment row is the authoritative write; the post's summary list is a
    projection of it. Neither operation rolls back on partial failure.

    create: validate -> write comment -> append summary. If the append fails
    the comment stays behind as an orphan and the caller gets a
    PartialWriteFailure; the reconciler repairs it later.

    delete: look up comment -> remove summary -> delete comment. Removing the
    summary first means an interruption leaves a hidden comment rather than a
    summary pointing at nothing.
    """

    def __init__(self, comments: CommentStore, posts: PostStore):
        self.comments = comments
        self.posts = posts

    async def create_comment(
        self,
        request: CommentCreate,
        author: Optional[AuthorRef] = None
    ) -> CommentOutcome:
        # A session author overrides whatever identity the body claims
        if author is None:
            author = AuthorRef(
                id=request.user_id or "",
                name=request.name,
                username=request.username,
            )

        if not request.comment or not author.id or not request.post_id:
            raise ValidationError("Please add comment")
        logger.debug(f"create_comment validated: post={request.post_id} author={author.id}")

        comment = await self.comments.create(
            text_body=request.comment,
            author=author,
            post_id=request.post_id,
            date=request.date or utc_now().isoformat(),
            title=request.title,
        )
        logger.debug(f"create_comment comment-written: {comment.id}")

        try:
            count = await self.posts.append_comment_summary(request.post_id, comment.summary())
        except (NotFound, StoreFailure) as exc:
            logger.warning(
                f"Orphaned comment {comment.id}: summary append to post "
                f"{request.post_id} failed ({exc.detail}); left for reconciliation"
            )
            raise PartialWriteFailure(comment.id, exc) from exc

        logger.info(f"Comment {comment.id} added to post {request.post_id} ({count} comments)")
        return CommentOutcome(comment_id=comment.id, comment_count=count)

    async def delete_comment(self, comment_id: Optional[str], post_id: Optional[str] = None) -> None:
        if not comment_id:
            raise NotFound("Comment not found")

        comment = await self.comments.find_by_id(comment_id)

        # A missing post or entry is fine here; a store failure aborts before the delete
        removed = await self.posts.remove_comment_summary(comment.post_id, comment.id)
        if post_id and post_id != comment.post_id:
            logger.warning(
                f"delete_comment: comment {comment.id} belongs to post {comment.post_id}, "
                f"request named {post_id}"
            )
            removed = await self.posts.remove_comment_summary(post_id, comment.id) or removed
        if not removed:
            logger.info(f"delete_comment: no summary for {comment.id} on post {comment.post_id}")
        logger.debug(f"delete_comment post-updated: {comment.id}")

        await self.comments.delete_by_id(comment.id)
        logger.info(f"Comment {comment.id} deleted")

    async def comments_for_author(self, author_id: str) -> List[CommentRecord]:
        return await self.comments.find_by_author(author_id)


@dataclass
class ImageFile:
    filename: str
    content_type: Optional[str]
    content: bytes


class PostService:
    def __init__(
        self,
        posts: PostStore,
        comments: CommentStore,
        users: UserStore,
        uploader: Optional[MediaUploader] = None,
        max_upload_bytes: int = 10 * 1024 * 1024,
        clock: Clock = utc_now,
    ):
        self.posts = posts
        self.comments = comments
        self.users = users
        self.uploader = uploader
        self.max_upload_bytes = max_upload_bytes
        self.clock = clock

    def _check_image(self, image: Optional[ImageFile]) -> ImageFile:
        if image is None or not image.content:
            raise ValidationError("No file uploaded!")
        if not (image.content_type or "").startswith("image/"):
            raise ValidationError("Invalid file type. Only images are allowed!")
        if len(image.content) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File too large. Max size allowed is {limit_mb}MB!")
        return image

    async def create_post(
        self,
        title: Optional[str],
        description: Optional[str],
        author: AuthorRef,
        date: Optional[str],
        image: Optional[ImageFile],
    ) -> PostRecord:
        if not title or not description or not author.id or not author.name or not author.username:
            raise ValidationError("Please add Title and Description")
        image = self._check_image(image)
        if self.uploader is None:
            raise UpstreamFailure("Media upload is not configured")

        uploaded = await self.uploader.upload(image.content, image.filename)
        try:
            post = await self.posts.create(
                title=title,
                description=description,
                author=author,
                date=date or self.clock().isoformat(),
                image_url=uploaded.url,
                image_public_id=uploaded.public_id,
            )
        except StoreFailure:
            logger.warning(f"Post create failed after upload; image {uploaded.public_id} is unreferenced")
            raise

        try:
            await self.users.add_post(author.id, post.id)
        except StoreFailure:
            logger.warning(f"Post {post.id} not recorded on author {author.id}")

        logger.info(f"Post {post.id} created by {author.id}")
        return post

    async def list_posts(self) -> List[PostRecord]:
        return await self.posts.find_all()

    async def get_post(self, post_id: str) -> PostRecord:
        return await self.posts.find_by_id(post_id)

    async def posts_for_author(self, user_id: str) -> List[PostRecord]:
        return await self.posts.find_by_author(user_id)

    async def delete_post(self, post_id: Optional[str]) -> None:
        if not post_id:
            raise NotFound("Post not found")

        post = await self.posts.find_by_id(post_id)
        await self.posts.delete_by_id(post.id)
        logger.info(f"Post {post.id} deleted")

        # Cleanup after the authoritative delete is best-effort
        try:
            await self.users.remove_post(post.user_id, post.id)
            removed = await self.comments.delete_by_post(post.id)
            if removed:
                logger.info(f"Deleted {removed} comments of post {post.id}")
        except StoreFailure:
            logger.warning(f"Cleanup after deleting post {post.id} failed; reconciliation will collect orphans")


class AccountService:
    def __init__(self, users: UserStore, clock: Clock = utc_now):
        self.users = users
        self.clock = clock

    async def signup(self, request: SignupRequest) -> UserRecord:
        if not request.name.strip():
            raise ValidationError("invalid input")

        if await self.users.find_by_email(request.email):
            raise Unauthorized("user already exists")

        user = await self.users.create(
            name=request.name,
            username=generate_username(self.clock()),
            email=request.email,
            hashed_password=hash_password(request.password),
        )
        # Unique index caught a concurrent signup with the same email
        if user is None:
            raise Unauthorized("user already exists")

        logger.info(f"User {user.id} signed up as {user.username}")
        return user

    async def signin(self, request: SigninRequest) -> Tuple[UserRecord, str]:
        user = await self.users.find_by_email(request.email)
        if not user:
            raise Unauthorized("user not found")

        if not verify_password(request.password, user.hashed_password):
            raise Unauthorized("invalid credentials")

        token = create_access_token(
            user_id=user.id,
            email=user.email,
            name=user.name,
            username=user.username,
        )
        return user, token
