"""
Image generation client for cover art

Providers take a prompt and a pixel size and answer with an image URL.
`generate_cover_image` tries each configured provider in order and ends
with a placeholder image so the cover workflow is never blocked.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence
from urllib.parse import quote_plus

import httpx

from kdp_cover.config.settings import Settings
from kdp_cover.cover.dimensions import provider_image_size
from kdp_cover.errors import AssetLoadError, KDPCoverError
from kdp_cover.fallback import ChainResult, JobState, JobStatus, Strategy, poll_job, run_chain

logger = logging.getLogger(__name__)

DEFAULT_NEGATIVE_PROMPT = "text, watermark, signature, blurry, low quality, distorted, deformed"


class ImageGenerationError(KDPCoverError):
    pass


@dataclass
class ImageRequest:
    prompt: str
    width: int
    height: int
    negative_prompt: str = DEFAULT_NEGATIVE_PROMPT
    style: Optional[str] = None
    rendering_speed: str = "STANDARD"
    seed: Optional[int] = None


@dataclass
class ImageResult:
    url: str
    provider: str
    width: int
    height: int


class ImageProvider(Protocol):
    name: str

    async def generate(self, request: ImageRequest) -> ImageResult:
        ...


class IdeogramClient:
    name = "ideogram"

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None,
                 timeout_s: float = 120.0):
        self.api_key = settings.ideogram_api_key
        self.url = settings.ideogram_api_url
        self.client = client
        self.timeout_s = timeout_s

    def _form(self, request: ImageRequest, width: int, height: int) -> dict:
        form = {
            "prompt": request.prompt,
            "width": str(width),
            "height": str(height),
            "negative_prompt": request.negative_prompt or DEFAULT_NEGATIVE_PROMPT,
            "num_images": "1",
            "seed": str(request.seed if request.seed is not None else random.randint(0, 999999)),
            "rendering_speed": request.rendering_speed,
        }
        if request.style:
            form["style_type"] = request.style
        return form

    async def generate(self, request: ImageRequest) -> ImageResult:
        if not self.api_key:
            raise ImageGenerationError("Ideogram API key not configured")
        if not request.prompt.strip():
            raise ImageGenerationError("Prompt is required")

        width, height = provider_image_size(request.width, request.height)
        form = self._form(request, width, height)
        headers = {"Api-Key": self.api_key}
        # sent as multipart/form-data
        files = {k: (None, v) for k, v in form.items()}
        logger.info("Requesting %dx%d cover art from Ideogram", width, height)
        try:
            if self.client is not None:
                resp = await self.client.post(self.url, headers=headers, files=files)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    resp = await client.post(self.url, headers=headers, files=files)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise ImageGenerationError(f"Ideogram returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ImageGenerationError(f"Ideogram request failed: {e}") from e
        if not isinstance(data, dict):
            raise ImageGenerationError("Ideogram response was not a JSON object")

        items = data.get("data") or []
        url = items[0].get("url") if items and isinstance(items[0], dict) else None
        if not url:
            raise ImageGenerationError("Ideogram response contained no image URL")
        return ImageResult(url=url, provider=self.name, width=request.width, height=request.height)


def placeholder_image_url(width: int, height: int, text: str = "Book Cover") -> str:
    w, h = provider_image_size(width, height)
    return f"https://placehold.co/{w}x{h}/3498DB-2980B9/FFFFFF/png?text={quote_plus(text)}"


async def generate_cover_image(request: ImageRequest,
                               providers: Sequence[ImageProvider]) -> ChainResult[ImageResult]:
    """First provider that answers wins; the placeholder always answers."""

    def attempt(provider: ImageProvider):
        return lambda: provider.generate(request)

    async def placeholder() -> ImageResult:
        return ImageResult(
            url=placeholder_image_url(request.width, request.height),
            provider="placeholder",
            width=request.width,
            height=request.height,
        )

    strategies: List[Strategy[ImageResult]] = [Strategy(p.name, attempt(p)) for p in providers]
    strategies.append(Strategy("placeholder", placeholder))
    return await run_chain(strategies, retry_on=(ImageGenerationError, AssetLoadError))


class PredictionClient:
    """Polls an asynchronous prediction (upscale / enhance) until it settles.

    The endpoint is expected to answer `{"status": ..., "output": url,
    "error": msg}` with statuses starting/processing/succeeded/failed.
    """

    def __init__(self, api_token: str, base_url: str = "https://api.replicate.com/v1",
                 client: Optional[httpx.AsyncClient] = None):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.client = client

    async def status(self, prediction_id: str) -> Optional[JobState]:
        url = f"{self.base_url}/predictions/{prediction_id}"
        headers = {"Authorization": f"Token {self.api_token}"}
        try:
            if self.client is not None:
                resp = await self.client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    resp = await client.get(url, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            return JobState(JobStatus.FAILED, reason=f"status check failed: {e}")
        if not isinstance(data, dict):
            return JobState(JobStatus.FAILED, reason="status check returned an unexpected payload")

        status = data.get("status")
        if status == "succeeded":
            output = data.get("output")
            if isinstance(output, list):
                output = output[0] if output else None
            if not output:
                return JobState(JobStatus.FAILED, reason="prediction succeeded without output")
            return JobState(JobStatus.COMPLETED, result=output)
        if status in ("failed", "canceled"):
            return JobState(JobStatus.FAILED, reason=data.get("error") or "Unknown error")
        return None

    async def wait(self, prediction_id: str, max_attempts: int = 30,
                   base_delay: float = 2.0, max_delay: float = 10.0) -> JobState:
        return await poll_job(lambda: self.status(prediction_id), max_attempts=max_attempts,
                              base_delay=base_delay, max_delay=max_delay)
