"""
Vision pipeline package:
- base: detector interface and outcome types
- cloud_vision: primary object-localization detector (Google Cloud Vision)
- classifier: pill-like filtering and the primary/fallback decision
- gpt_fallback: generative vision fallback via an OpenAI-compatible gateway
- normalizer: builds the final CountResult for either path
- pipeline: high-level Cloud-Vision-first orchestrator with GPT fallback
"""
