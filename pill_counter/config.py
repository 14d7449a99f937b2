import os


def _parse_cors_origins(raw: str) -> list[str]:
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


CORS_ORIGINS = _parse_cors_origins(os.getenv("CORS_ORIGINS", "*"))
ALLOW_ALL_ORIGINS = CORS_ORIGINS == ["*"]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -----------------------------------
# Primary detector (Google Cloud Vision)
# -----------------------------------

# GOOGLE_CLOUD_VISION_API_KEY: required, requests fail with a configuration
# error when it is missing.
GOOGLE_CLOUD_VISION_API_KEY = os.getenv("GOOGLE_CLOUD_VISION_API_KEY")
GOOGLE_CLOUD_VISION_URL = os.getenv(
    "GOOGLE_CLOUD_VISION_URL",
    "https://vision.googleapis.com/v1/images:annotate",
)

# HTTP_TIMEOUT_S: transport timeout for backend calls (0 = no timeout)
HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", "30"))

# -----------------------------------
# Fallback detector (OpenAI-compatible AI gateway)
# -----------------------------------

# AI_GATEWAY_API_KEY: optional, without it the fallback is skipped and an
# empty low-confidence result is returned.
AI_GATEWAY_API_KEY = os.getenv("AI_GATEWAY_API_KEY")
AI_GATEWAY_BASE_URL = os.getenv("AI_GATEWAY_BASE_URL", "https://ai.gateway.lovable.dev/v1")
FALLBACK_MODEL = os.getenv("FALLBACK_MODEL", "google/gemini-2.5-flash")

# -----------------------------------
# Live mode
# -----------------------------------

# Timer period is finer than the throttle so a pause/resume or a slow call
# does not add a long wait before the next permitted analysis.
LIVE_TICK_INTERVAL_S = float(os.getenv("LIVE_TICK_INTERVAL_S", "0.5"))
LIVE_MIN_INTERVAL_S = float(os.getenv("LIVE_MIN_INTERVAL_S", "1.5"))

# -----------------------------------
# Training data store
# -----------------------------------

TRAINING_DATA_DIR = os.getenv("TRAINING_DATA_DIR", "data/training")
