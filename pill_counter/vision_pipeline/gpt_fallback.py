"""Generative vision fallback through an OpenAI-compatible AI gateway."""

import logging
import time
from typing import Callable, Optional

import openai
from openai import OpenAI

from pill_counter.config import FALLBACK_MODEL
from pill_counter.errors import BackendError, BackendUnavailable
from pill_counter.image_ingest import DecodedImage
from pill_counter.openai_client import get_openai_client
from pill_counter.prompts import SYSTEM_PROMPT, USER_PROMPT
from pill_counter.utils import extract_first_json_object
from .base import Detector, FallbackOutcome

logger = logging.getLogger(__name__)


class GatewayFallbackDetector(Detector):
    """
    Asks a vision-language model to count the pills and parses the JSON it
    embeds in its reply.

    Raises BackendUnavailable on 429 (retryable) and 402 (terminal),
    BackendError on any other failing status, ParseError when the reply
    holds no usable JSON object.
    """

    name = "gpt_fallback"

    def __init__(
        self,
        model: str = FALLBACK_MODEL,
        client_factory: Callable[[], OpenAI] = get_openai_client,
    ):
        self.model = model
        self._client_factory = client_factory

    def _call_model(self, image: DecodedImage) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_PROMPT},
                    {"type": "image_url", "image_url": {"url": image.data_url}},
                ],
            },
        ]

        try:
            response = self._client_factory().chat.completions.create(
                model=self.model,
                messages=messages,
            )
        except openai.RateLimitError as e:
            logger.warning("Fallback model rate limited: %s", e)
            raise BackendUnavailable(
                "Rate limit exceeded. Please try again later.",
                status_code=429,
                retryable=True,
            ) from e
        except openai.APIStatusError as e:
            if e.status_code == 402:
                logger.error("Fallback model quota exhausted: %s", e)
                raise BackendUnavailable(
                    "AI usage limit reached. Please add credits to continue.",
                    status_code=402,
                    retryable=False,
                ) from e
            logger.error("Fallback model error: %s %s", e.status_code, e)
            raise BackendError(f"AI gateway error: {e.status_code}") from e
        except openai.APIConnectionError as e:
            logger.error("Fallback model unreachable: %s", e)
            raise BackendUnavailable(f"AI gateway unreachable: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def detect(self, image: DecodedImage) -> FallbackOutcome:
        logger.info("Sending %.1fkb image to model=%s", len(image.base64) / 1024, self.model)
        t0 = time.perf_counter()

        text = self._call_model(image)
        logger.info(
            "Fallback response received in %.3fs, length: %s",
            time.perf_counter() - t0,
            len(text),
        )

        parsed = extract_first_json_object(text)
        logger.info("Parsed fallback JSON: %s", parsed)
        return FallbackOutcome(payload=parsed)


def build_fallback_detector(api_key: Optional[str]) -> Optional[GatewayFallbackDetector]:
    """Return a fallback detector, or None when no gateway key is configured."""
    if not api_key:
        logger.warning("AI_GATEWAY_API_KEY not set; generative fallback disabled")
        return None
    return GatewayFallbackDetector()
