from app.blog.exceptions import (
    BlogError,
    ValidationError,
    NotFound,
    Unauthorized,
    StoreFailure,
    PartialWriteFailure,
    UpstreamFailure
)
from app.blog.schemas import (
    AuthorRef,
    CommentSummary,
    CommentRecord,
    PostRecord,
    UserRecord,
    CommentOutcome,
    ReconcileReport
)
from app.blog.stores import CommentStore, PostStore, UserStore
from app.blog.service import (
    CommentService,
    PostService,
    AccountService,
    generate_username
)
from app.blog.reconcile import Reconciler

__all__ = [
    # Exceptions
    "BlogError",
    "ValidationError",
    "NotFound",
    "Unauthorized",
    "StoreFailure",
    "PartialWriteFailure",
    "UpstreamFailure",
    # Records
    "AuthorRef",
    "CommentSummary",
    "CommentRecord",
    "PostRecord",
    "UserRecord",
    "CommentOutcome",
    "ReconcileReport",
    # Stores
    "CommentStore",
    "PostStore",
    "UserStore",
    # Services
    "CommentService",
    "PostService",
    "AccountService",
    "generate_username",
    "Reconciler",
]
