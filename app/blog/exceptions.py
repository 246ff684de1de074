from typing import Optional

from fastapi import HTTPException, status


class BlogError(HTTPException):
    """Base for errors rendered as {"message": detail}"""

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class ValidationError(BlogError):
    """A required field is missing or malformed; nothing was written"""

    def __init__(self, detail: str = "invalid input"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class NotFound(BlogError):
    """A referenced id does not resolve"""

    def __init__(self, detail: str = "Not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class Unauthorized(BlogError):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)


class StoreFailure(BlogError):
    """The database call errored or timed out"""

    def __init__(self, detail: str = "Internal Server Error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail)


class PartialWriteFailure(BlogError):
    """
    The authoritative comment write succeeded but the post projection did not.
    The comment is left in place as an orphan for the reconciler. A missing
    post and a failed store call both answer 500; `cause` tells them apart.
    """

    def __init__(self, comment_id: str, cause: Exception, detail: Optional[str] = None):
        self.comment_id = comment_id
        self.cause = cause
        super().__init__(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail or "Internal Server Error on comment",
        )


class UpstreamFailure(BlogError):
    """The media host or language model call failed"""

    def __init__(self, detail: str = "Upstream service failure"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail)
