import pytest
from fastapi.testclient import TestClient

from app.api.deps import (
    get_account_service,
    get_comment_service,
    get_description_generator,
    get_post_service,
)
from app.blog.service import AccountService, CommentService, PostService
from app.main import app
from tests.fakes import (
    FIXED_NOW,
    FakeGenerator,
    FakeUploader,
    InMemoryCommentStore,
    InMemoryPostStore,
    InMemoryUserStore,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def journal():
    return []


@pytest.fixture
def comment_store(journal):
    return InMemoryCommentStore(journal)


@pytest.fixture
def post_store(journal):
    return InMemoryPostStore(journal)


@pytest.fixture
def user_store(journal):
    return InMemoryUserStore(journal)


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def comment_service(comment_store, post_store):
    return CommentService(comment_store, post_store)


@pytest.fixture
def post_service(post_store, comment_store, user_store, uploader):
    return PostService(
        post_store,
        comment_store,
        user_store,
        uploader=uploader,
        max_upload_bytes=1024,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def account_service(user_store):
    return AccountService(user_store, clock=lambda: FIXED_NOW)


@pytest.fixture
def client(comment_service, post_service, account_service, generator):
    """TestClient wired to in-memory stores; the lifespan is not started."""
    app.dependency_overrides[get_comment_service] = lambda: comment_service
    app.dependency_overrides[get_post_service] = lambda: post_service
    app.dependency_overrides[get_account_service] = lambda: account_service
    app.dependency_overrides[get_description_generator] = lambda: generator
    yield TestClient(app)
    app.dependency_overrides.clear()
