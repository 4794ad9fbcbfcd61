"""Generative image providers"""

from kdp_cover.ai.image_client import (
    IdeogramClient,
    ImageGenerationError,
    ImageRequest,
    ImageResult,
    PredictionClient,
    generate_cover_image,
    placeholder_image_url,
)

__all__ = [
    "IdeogramClient",
    "ImageGenerationError",
    "ImageRequest",
    "ImageResult",
    "PredictionClient",
    "generate_cover_image",
    "placeholder_image_url",
]
