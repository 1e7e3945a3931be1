"""
Gemini Haircut Generation Service for HaircutFun

Uses the google.genai SDK to restyle the hair in a user photo.
Server-side errors are retried through a RetryPolicy; client errors and
content blocks surface immediately.
"""

import asyncio
import base64
import binascii
import logging
from typing import List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.infrastructure.exceptions import (
    AIServiceError,
    ConfigurationError,
    ContentBlockedError,
    UpstreamUnavailableError,
    ValidationError,
)
from app.infrastructure.retry import RetryPolicy


logger = logging.getLogger(__name__)


DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_STYLE_DETAILS = "A standard version of the hairstyle."

SAFETY_SETTINGS = [
    types.SafetySetting(
        category=category,
        threshold=types.HarmBlockThreshold.BLOCK_NONE,
    )
    for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]


def is_server_error(error: BaseException) -> bool:
    """Only 5xx responses from the Gemini API are worth retrying."""
    return isinstance(error, genai_errors.ServerError)


def build_haircut_prompt(haircut_style: str, haircut_description: Optional[str] = None) -> str:
    """Structured image-edit instruction sent alongside the photo."""
    details = haircut_description or DEFAULT_STYLE_DETAILS
    return (
        "TASK: Perform an image-to-image transformation.\n"
        "INPUT_IMAGE: [The user's photo is provided]\n"
        f'INSTRUCTION: Modify the hair of the person in the INPUT_IMAGE to a "{haircut_style}" hairstyle.\n'
        f'STYLE_DETAILS: "{details}"\n'
        "RULES:\n"
        "1. DO NOT change the person's facial features, expression, or identity.\n"
        "2. DO NOT alter the background, lighting, or photo quality.\n"
        "3. The ONLY change should be the hairstyle.\n"
        "4. OUTPUT MUST BE AN IMAGE ONLY. Do not respond with text, confirmation, or any refusal."
    )


def decode_photo(user_photo: str) -> bytes:
    """
    Decode a base64 photo, with or without a ``data:`` URL prefix.

    Raises:
        ValidationError: The payload is not valid base64
    """
    data = user_photo.split(",", 1)[1] if "," in user_photo else user_photo
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("userPhoto is not valid base64 image data", original_error=e)


class HaircutGenerationService:
    """
    Haircut try-on generation on top of a Gemini image model.

    Args:
        client: google.genai client
        model: Image-capable model name
        retry_policy: Backoff for server-side failures
    """

    def __init__(
        self,
        client: genai.Client,
        model: str = DEFAULT_IMAGE_MODEL,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self._client = client
        self._model = model
        self._retry = retry_policy or RetryPolicy(is_retryable=is_server_error)

    @classmethod
    def from_api_key(
        cls,
        api_key: Optional[str],
        model: str = DEFAULT_IMAGE_MODEL,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> "HaircutGenerationService":
        if not api_key:
            raise ConfigurationError(
                "Missing GOOGLE_API_KEY environment variable",
                missing_keys=["GOOGLE_API_KEY", "GEMINI_API_KEY"],
            )
        return cls(genai.Client(api_key=api_key), model=model, retry_policy=retry_policy)

    @property
    def model(self) -> str:
        return self._model

    def _generate_sync(self, contents: List) -> types.GenerateContentResponse:
        return self._client.models.generate_content(
            model=self._model,
            contents=contents,
            config=types.GenerateContentConfig(
                safety_settings=SAFETY_SETTINGS,
                response_modalities=["IMAGE", "TEXT"],
            ),
        )

    async def generate(
        self,
        user_photo: str,
        haircut_style: str,
        haircut_description: Optional[str] = None,
    ) -> str:
        """
        Render the user's photo with a new hairstyle.

        Args:
            user_photo: Base64 JPEG, optionally as a data URL
            haircut_style: Style name
            haircut_description: Optional free-text details

        Returns:
            Base64-encoded image data

        Raises:
            ValidationError: Photo is not decodable
            ContentBlockedError: The model stopped for a non-STOP reason
            UpstreamUnavailableError: Server errors outlasted the retries
            AIServiceError: Any other model failure, or no image returned
        """
        photo_bytes = decode_photo(user_photo)
        contents = [
            build_haircut_prompt(haircut_style, haircut_description),
            types.Part.from_bytes(data=photo_bytes, mime_type="image/jpeg"),
        ]

        logger.info(f"Calling {self._model} for haircut style: {haircut_style}")

        async def attempt() -> types.GenerateContentResponse:
            return await asyncio.to_thread(self._generate_sync, contents)

        try:
            response = await self._retry.run(attempt, operation_name="Gemini image generation")
        except genai_errors.ServerError as e:
            logger.error(f"Gemini unavailable after {self._retry.max_attempts} attempts: {e}")
            raise UpstreamUnavailableError(attempts=self._retry.max_attempts, original_error=e)
        except genai_errors.APIError as e:
            logger.error(f"Gemini request rejected: {e}")
            raise AIServiceError(
                f"Image generation failed: {e}",
                model=self._model,
                operation="generate_content",
                original_error=e,
            )

        return self._extract_image(response)

    def _extract_image(self, response: types.GenerateContentResponse) -> str:
        candidate = response.candidates[0] if response.candidates else None

        if candidate is None or candidate.finish_reason != types.FinishReason.STOP:
            reason = candidate.finish_reason if candidate is not None else None
            reason_name = getattr(reason, "value", None) or (str(reason) if reason else "Unknown")
            logger.error(f"Gemini blocked the request: finish_reason={reason_name}")
            raise ContentBlockedError(reason_name, model=self._model)

        parts = candidate.content.parts if candidate.content and candidate.content.parts else []
        for part in parts:
            if part.inline_data is not None and part.inline_data.data:
                return base64.b64encode(part.inline_data.data).decode("ascii")

        text = next((p.text for p in parts if p.text), None)
        logger.error(f"No image generated. Model responded with: {text}")
        raise AIServiceError(
            "The AI failed to generate an image"
            + (f'. Final model response: "{text}"' if text else ""),
            model=self._model,
            operation="generate_content",
        )
