"""In-memory stand-ins for the SQL stores, with a shared call journal."""

import itertools
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from app.blog.exceptions import NotFound, StoreFailure, ValidationError
from app.blog.schemas import (
    AuthorRef,
    CommentRecord,
    CommentSummary,
    PostRecord,
    UserRecord,
)
from app.media.uploader import UploadedImage

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


def next_id(prefix: str) -> str:
    return f"{prefix}{next(_ids)}"


class InstrumentedStore:
    """Journals every call as (store, operation, *args) and fails on demand"""

    name = "store"

    def __init__(self, journal: Optional[list] = None):
        self.journal = journal if journal is not None else []
        self.fail_on: Set[str] = set()

    def _call(self, operation: str, *args) -> None:
        self.journal.append((self.name, operation) + args)
        if operation in self.fail_on:
            raise StoreFailure()


class InMemoryCommentStore(InstrumentedStore):
    name = "comments"

    def __init__(self, journal: Optional[list] = None):
        super().__init__(journal)
        self.rows: Dict[str, CommentRecord] = {}

    def seed(self, **fields) -> CommentRecord:
        fields.setdefault("id", next_id("c"))
        fields.setdefault("created_at", datetime.utcnow())
        record = CommentRecord(**fields)
        self.rows[record.id] = record
        return record

    async def create(self, text_body, author: AuthorRef, post_id, date=None, title=None) -> CommentRecord:
        self._call("create", post_id)
        if not text_body or not author.id or not post_id:
            raise ValidationError("Please add comment")
        return self.seed(
            comment=text_body,
            user_id=author.id,
            username=author.username,
            name=author.name,
            post_id=post_id,
            date=date,
            title=title,
        )

    async def find_by_id(self, comment_id: str) -> CommentRecord:
        self._call("find_by_id", comment_id)
        if comment_id not in self.rows:
            raise NotFound("Comment not found")
        return self.rows[comment_id]

    async def find_by_author(self, author_id: str) -> List[CommentRecord]:
        self._call("find_by_author", author_id)
        return [c for c in self.rows.values() if c.user_id == author_id]

    async def find_by_post(self, post_id: str) -> List[CommentRecord]:
        self._call("find_by_post", post_id)
        return [c for c in self.rows.values() if c.post_id == post_id]

    async def find_all(self) -> List[CommentRecord]:
        self._call("find_all")
        return list(self.rows.values())

    async def delete_by_id(self, comment_id: str) -> None:
        self._call("delete_by_id", comment_id)
        if self.rows.pop(comment_id, None) is None:
            raise NotFound("Comment not found")

    async def delete_by_post(self, post_id: str) -> int:
        self._call("delete_by_post", post_id)
        doomed = [cid for cid, c in self.rows.items() if c.post_id == post_id]
        for cid in doomed:
            del self.rows[cid]
        return len(doomed)


class InMemoryPostStore(InstrumentedStore):
    name = "posts"

    def __init__(self, journal: Optional[list] = None):
        super().__init__(journal)
        self.rows: Dict[str, PostRecord] = {}

    def seed(self, **fields) -> PostRecord:
        fields.setdefault("id", next_id("p"))
        fields.setdefault("title", "A post")
        fields.setdefault("description", "Something to read")
        fields.setdefault("user_id", "u0")
        fields.setdefault("name", "Ada")
        fields.setdefault("username", "User_1")
        fields.setdefault("date", "2026-10-19")
        fields.setdefault("image_url", "https://img.example/a.jpeg")
        fields.setdefault("created_at", datetime.utcnow())
        record = PostRecord(**fields)
        self.rows[record.id] = record
        return record

    async def create(self, title, description, author: AuthorRef, date, image_url, image_public_id=None) -> PostRecord:
        self._call("create", author.id)
        return self.seed(
            title=title,
            description=description,
            user_id=author.id,
            name=author.name,
            username=author.username,
            date=date,
            image_url=image_url,
            image_public_id=image_public_id,
        )

    async def find_all(self) -> List[PostRecord]:
        self._call("find_all")
        return list(self.rows.values())

    async def find_by_id(self, post_id: str) -> PostRecord:
        self._call("find_by_id", post_id)
        if post_id not in self.rows:
            raise NotFound("Post not found")
        return self.rows[post_id]

    async def find_by_author(self, user_id: str) -> List[PostRecord]:
        self._call("find_by_author", user_id)
        return [p for p in self.rows.values() if p.user_id == user_id]

    async def exists(self, post_id: str) -> bool:
        self._call("exists", post_id)
        return post_id in self.rows

    async def delete_by_id(self, post_id: str) -> None:
        self._call("delete_by_id", post_id)
        if self.rows.pop(post_id, None) is None:
            raise NotFound("Post not found")

    async def append_comment_summary(self, post_id: str, summary: CommentSummary) -> int:
        self._call("append_comment_summary", post_id, summary.comment_id)
        post = self.rows.get(post_id)
        if post is None:
            raise NotFound("Post not found")
        comments = post.comments + [summary]
        self.rows[post_id] = post.model_copy(update={"comments": comments})
        return len(comments)

    async def remove_comment_summary(self, post_id: str, comment_id: str) -> bool:
        self._call("remove_comment_summary", post_id, comment_id)
        post = self.rows.get(post_id)
        if post is None or not post.has_comment(comment_id):
            return False
        comments = [s for s in post.comments if s.comment_id != comment_id]
        self.rows[post_id] = post.model_copy(update={"comments": comments})
        return True


class InMemoryUserStore(InstrumentedStore):
    name = "users"

    def __init__(self, journal: Optional[list] = None):
        super().__init__(journal)
        self.rows: Dict[str, UserRecord] = {}

    async def create(self, name, username, email, hashed_password) -> Optional[UserRecord]:
        self._call("create", email)
        if any(u.email == email for u in self.rows.values()):
            return None
        record = UserRecord(
            id=next_id("u"),
            name=name,
            username=username,
            email=email,
            hashed_password=hashed_password,
            created_at=datetime.utcnow(),
        )
        self.rows[record.id] = record
        return record

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        self._call("find_by_email", email)
        return next((u for u in self.rows.values() if u.email == email), None)

    async def add_post(self, user_id: str, post_id: str) -> bool:
        self._call("add_post", user_id, post_id)
        user = self.rows.get(user_id)
        if user is None:
            return False
        self.rows[user_id] = user.model_copy(update={"posts": user.posts + [post_id]})
        return True

    async def remove_post(self, user_id: str, post_id: str) -> bool:
        self._call("remove_post", user_id, post_id)
        user = self.rows.get(user_id)
        if user is None:
            return False
        self.rows[user_id] = user.model_copy(
            update={"posts": [p for p in user.posts if p != post_id]}
        )
        return True


class FakeUploader:
    def __init__(self):
        self.uploads: List[str] = []

    async def upload(self, content: bytes, filename: str) -> UploadedImage:
        self.uploads.append(filename)
        return UploadedImage(
            url=f"https://res.cloudinary.test/uploads/{filename}",
            public_id=f"uploads/{filename}",
        )


class FakeGenerator:
    def __init__(self, reply: str = "A short and friendly description."):
        self.reply = reply
        self.titles: List[str] = []

    async def generate(self, title: Optional[str]) -> str:
        if not title or not title.strip():
            raise ValidationError("Please add title")
        self.titles.append(title)
        return self.reply


class FakeRedis:
    """Just enough of redis.asyncio for SET NX EX and the release script"""

    def __init__(self):
        self.data: Dict[str, str] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        if self.data.get(key) == token:
            del self.data[key]
            return 1
        return 0
