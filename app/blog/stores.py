"""
SQL-backed stores for users, posts and comments.

Each store owns one table. Database errors and statement timeouts are
converted to StoreFailure; ids that are not UUIDs never resolve.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.blog.exceptions import NotFound, StoreFailure, ValidationError
from app.blog.models import Comment, Post, User
from app.blog.schemas import (
    AuthorRef,
    CommentRecord,
    CommentSummary,
    PostRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)


def parse_id(value) -> Optional[UUID]:
    """Parse an opaque id, returning None when it cannot name a row"""
    if value is None:
        return None
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


@asynccontextmanager
async def store_errors(db: AsyncSession, operation: str):
    """Translate driver errors and timeouts into StoreFailure"""
    try:
        yield
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.error(f"Store call failed: {operation}: {exc!r}")
        try:
            await db.rollback()
        except SQLAlchemyError as rollback_exc:
            logger.warning(f"Rollback after failed {operation} also failed: {rollback_exc!r}")
        raise StoreFailure() from exc


def _comment_record(row: Comment) -> CommentRecord:
    return CommentRecord(
        id=str(row.id),
        comment=row.comment,
        user_id=str(row.user_id),
        username=row.username,
        name=row.name,
        post_id=str(row.post_id),
        date=row.date,
        title=row.title,
        created_at=row.created_at,
    )


def _post_record(row: Post) -> PostRecord:
    return PostRecord(
        id=str(row.id),
        title=row.title,
        description=row.description,
        user_id=str(row.user_id),
        name=row.name,
        username=row.username,
        date=row.date,
        image_url=row.image_url,
        image_public_id=row.image_public_id,
        comments=[CommentSummary(**entry) for entry in (row.comments or [])],
        created_at=row.created_at,
    )


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=str(row.id),
        name=row.name,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        posts=[str(p) for p in (row.posts or [])],
        created_at=row.created_at,
    )


class CommentStore:
    """Canonical comment documents"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        text_body: Optional[str],
        author: AuthorRef,
        post_id: Optional[str],
        date: Optional[str] = None,
        title: Optional[str] = None,
    ) -> CommentRecord:
        if not text_body or not author.id or not post_id:
            raise ValidationError("Please add comment")

        user_uuid = parse_id(author.id)
        post_uuid = parse_id(post_id)
        if user_uuid is None or post_uuid is None:
            raise ValidationError("Invalid id")

        comment = Comment(
            comment=text_body,
            user_id=user_uuid,
            username=author.username,
            name=author.name,
            post_id=post_uuid,
            date=date,
            title=title,
        )
        async with store_errors(self.db, "comment create"):
            self.db.add(comment)
            await self.db.commit()
        return _comment_record(comment)

    async def find_by_id(self, comment_id: str) -> CommentRecord:
        cid = parse_id(comment_id)
        if cid is None:
            raise NotFound("Comment not found")

        async with store_errors(self.db, "comment lookup"):
            result = await self.db.execute(select(Comment).where(Comment.id == cid))
            row = result.scalar_one_or_none()

        if not row:
            raise NotFound("Comment not found")
        return _comment_record(row)

    async def find_by_author(self, author_id: str) -> List[CommentRecord]:
        uid = parse_id(author_id)
        if uid is None:
            return []

        async with store_errors(self.db, "comments by author"):
            result = await self.db.execute(
                select(Comment).where(Comment.user_id == uid).order_by(Comment.created_at)
            )
            rows = result.scalars().all()
        return [_comment_record(r) for r in rows]

    async def find_by_post(self, post_id: str) -> List[CommentRecord]:
        pid = parse_id(post_id)
        if pid is None:
            return []

        async with store_errors(self.db, "comments by post"):
            result = await self.db.execute(
                select(Comment).where(Comment.post_id == pid).order_by(Comment.created_at)
            )
            rows = result.scalars().all()
        return [_comment_record(r) for r in rows]

    async def find_all(self) -> List[CommentRecord]:
        async with store_errors(self.db, "comment scan"):
            result = await self.db.execute(select(Comment).order_by(Comment.created_at))
            rows = result.scalars().all()
        return [_comment_record(r) for r in rows]

    async def delete_by_id(self, comment_id: str) -> None:
        cid = parse_id(comment_id)
        if cid is None:
            raise NotFound("Comment not found")

        async with store_errors(self.db, "comment delete"):
            result = await self.db.execute(delete(Comment).where(Comment.id == cid))
            await self.db.commit()

        if result.rowcount == 0:
            raise NotFound("Comment not found")

    async def delete_by_post(self, post_id: str) -> int:
        pid = parse_id(post_id)
        if pid is None:
            return 0

        async with store_errors(self.db, "comment delete by post"):
            result = await self.db.execute(delete(Comment).where(Comment.post_id == pid))
            await self.db.commit()
        return result.rowcount


class PostStore:
    """
    Canonical post documents and their embedded comment summaries.

    The summary list is only ever changed with single-statement updates, so
    concurrent appends and removals on one post cannot overwrite each other.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        title: str,
        description: str,
        author: AuthorRef,
        date: str,
        image_url: str,
        image_public_id: Optional[str] = None,
    ) -> PostRecord:
        user_uuid = parse_id(author.id)
        if user_uuid is None:
            raise ValidationError("Invalid id")

        post = Post(
            title=title,
            description=description,
            user_id=user_uuid,
            name=author.name,
            username=author.username,
            date=date,
            image_url=image_url,
            image_public_id=image_public_id,
            comments=[],
        )
        async with store_errors(self.db, "post create"):
            self.db.add(post)
            await self.db.commit()
        return _post_record(post)

    async def find_all(self) -> List[PostRecord]:
        async with store_errors(self.db, "post scan"):
            result = await self.db.execute(select(Post).order_by(Post.created_at))
            rows = result.scalars().all()
        return [_post_record(r) for r in rows]

    async def find_by_id(self, post_id: str) -> PostRecord:
        pid = parse_id(post_id)
        if pid is None:
            raise NotFound("Post not found")

        async with store_errors(self.db, "post lookup"):
            result = await self.db.execute(select(Post).where(Post.id == pid))
            row = result.scalar_one_or_none()

        if not row:
            raise NotFound("Post not found")
        return _post_record(row)

    async def find_by_author(self, user_id: str) -> List[PostRecord]:
        uid = parse_id(user_id)
        if uid is None:
            return []

        async with store_errors(self.db, "posts by author"):
            result = await self.db.execute(
                select(Post).where(Post.user_id == uid).order_by(Post.created_at)
            )
            rows = result.scalars().all()
        return [_post_record(r) for r in rows]

    async def exists(self, post_id: str) -> bool:
        pid = parse_id(post_id)
        if pid is None:
            return False

        async with store_errors(self.db, "post exists"):
            result = await self.db.execute(select(Post.id).where(Post.id == pid))
            return result.scalar_one_or_none() is not None

    async def delete_by_id(self, post_id: str) -> None:
        pid = parse_id(post_id)
        if pid is None:
            raise NotFound("Post not found")

        async with store_errors(self.db, "post delete"):
            result = await self.db.execute(delete(Post).where(Post.id == pid))
            await self.db.commit()

        if result.rowcount == 0:
            raise NotFound("Post not found")

    async def append_comment_summary(self, post_id: str, summary: CommentSummary) -> int:
        """Append one summary and return the new length of the embedded list"""
        pid = parse_id(post_id)
        if pid is None:
            raise NotFound("Post not found")

        async with store_errors(self.db, "summary append"):
            result = await self.db.execute(
                text("""
                    UPDATE posts
                    SET comments = comments || jsonb_build_array(CAST(:summary AS jsonb))
                    WHERE id = :post_id
                    RETURNING jsonb_array_length(comments) AS comment_count
                """),
                {"summary": json.dumps(summary.model_dump()), "post_id": pid},
            )
            row = result.fetchone()
            await self.db.commit()

        if not row:
            raise NotFound("Post not found")
        return row.comment_count

    async def remove_comment_summary(self, post_id: str, comment_id: str) -> bool:
        """
        Remove every summary for comment_id from the post.
        Returns False when the post or the entry is absent; that is not an error.
        """
        pid = parse_id(post_id)
        if pid is None:
            return False

        match = json.dumps([{"comment_id": str(comment_id)}])
        async with store_errors(self.db, "summary remove"):
            result = await self.db.execute(
                text("""
                    UPDATE posts
                    SET comments = COALESCE(
                        (
                            SELECT jsonb_agg(entry)
                            FROM jsonb_array_elements(comments) AS entry
                            WHERE entry->>'comment_id' <> :comment_id
                        ),
                        CAST('[]' AS jsonb)
                    )
                    WHERE id = :post_id AND comments @> CAST(:match AS jsonb)
                    RETURNING id
                """),
                {"comment_id": str(comment_id), "post_id": pid, "match": match},
            )
            row = result.fetchone()
            await self.db.commit()

        return row is not None


class UserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        name: str,
        username: str,
        email: str,
        hashed_password: str,
    ) -> Optional[UserRecord]:
        """Create a user; returns None when the email is already taken."""
        user = User(
            name=name,
            username=username,
            email=email,
            hashed_password=hashed_password,
            posts=[],
        )
        try:
            self.db.add(user)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return None
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            logger.error(f"Store call failed: user create: {exc!r}")
            await self.db.rollback()
            raise StoreFailure() from exc
        return _user_record(user)

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        async with store_errors(self.db, "user lookup"):
            result = await self.db.execute(select(User).where(User.email == email))
            row = result.scalar_one_or_none()
        return _user_record(row) if row else None

    async def add_post(self, user_id: str, post_id: str) -> bool:
        uid, pid = parse_id(user_id), parse_id(post_id)
        if uid is None or pid is None:
            return False

        async with store_errors(self.db, "user post append"):
            result = await self.db.execute(
                text("UPDATE users SET posts = array_append(posts, :post_id) WHERE id = :user_id"),
                {"post_id": pid, "user_id": uid},
            )
            await self.db.commit()
        return result.rowcount > 0

    async def remove_post(self, user_id: str, post_id: str) -> bool:
        uid, pid = parse_id(user_id), parse_id(post_id)
        if uid is None or pid is None:
            return False

        async with store_errors(self.db, "user post remove"):
            result = await self.db.execute(
                text("UPDATE users SET posts = array_remove(posts, :post_id) WHERE id = :user_id"),
                {"post_id": pid, "user_id": uid},
            )
            await self.db.commit()
        return result.rowcount > 0
