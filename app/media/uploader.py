"""Image upload to Cloudinary."""

import logging
import os
import time
from dataclasses import dataclass

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from fastapi.concurrency import run_in_threadpool

from app.blog.exceptions import UpstreamFailure
from app.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class UploadedImage:
    url: str
    public_id: str


def configure_media(settings: Settings) -> None:
    """Configure the Cloudinary SDK once at startup."""
    cloudinary.config(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        secure=True,
    )
    logger.info(f"Media host configured for cloud '{settings.CLOUDINARY_CLOUD_NAME}'")


class MediaUploader:
    """Uploads images to a Cloudinary folder and returns their delivery URL."""

    def __init__(self, folder: str):
        self.folder = folder

    def _public_id(self, filename: str) -> str:
        stem = os.path.splitext(os.path.basename(filename or "upload"))[0]
        return f"{int(time.time() * 1000)}-{stem}"

    async def upload(self, content: bytes, filename: str) -> UploadedImage:
        # The SDK is blocking; keep it off the event loop
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                content,
                folder=self.folder,
                public_id=self._public_id(filename),
                format="jpeg",
                resource_type="image",
            )
        except (cloudinary.exceptions.Error, OSError) as exc:
            logger.error(f"Image upload failed for '{filename}': {exc!r}")
            raise UpstreamFailure("Internal Server Error on image upload") from exc

        logger.info(f"Uploaded image {result['public_id']}")
        return UploadedImage(url=result["secure_url"], public_id=result["public_id"])
