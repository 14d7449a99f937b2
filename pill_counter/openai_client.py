import logging
from functools import lru_cache

from openai import OpenAI

from pill_counter.config import AI_GATEWAY_API_KEY, AI_GATEWAY_BASE_URL
from pill_counter.errors import ConfigurationError

logger = logging.getLogger(__name__)


@lru_cache
def get_openai_client() -> OpenAI:
    if not AI_GATEWAY_API_KEY:
        raise ConfigurationError("AI_GATEWAY_API_KEY is not set")
    logger.info("Initializing OpenAI client for gateway %s", AI_GATEWAY_BASE_URL)
    # One attempt per request; retrying is left to the caller.
    return OpenAI(api_key=AI_GATEWAY_API_KEY, base_url=AI_GATEWAY_BASE_URL, max_retries=0)
