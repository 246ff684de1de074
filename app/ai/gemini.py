"""Post description generation with Gemini."""

import logging
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from app.blog.exceptions import UpstreamFailure, ValidationError
from app.config import Settings

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "Write a description for the given title: {title}. "
    "The message should not be less than 30 words and use simple English vocabulary."
)


def configure_gemini(settings: Settings) -> None:
    """Configure the Gemini client once at startup."""
    genai.configure(api_key=settings.GEMINI_API_KEY)
    logger.info(f"Language model configured: {settings.GEMINI_MODEL}")


class DescriptionGenerator:
    def __init__(self, model_name: str):
        self.model = genai.GenerativeModel(model_name)

    async def generate(self, title: Optional[str]) -> str:
        if not title or not title.strip():
            raise ValidationError("Please add title")

        prompt = PROMPT_TEMPLATE.format(title=title.strip())
        try:
            response = await self.model.generate_content_async(prompt)
            # .text raises ValueError when the candidate was blocked
            return response.text
        except (google_exceptions.GoogleAPIError, ValueError) as exc:
            logger.error(f"Description generation failed for '{title}': {exc!r}")
            raise UpstreamFailure("Internal Server Error on description generation") from exc
