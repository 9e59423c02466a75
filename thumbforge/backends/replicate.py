"""Replicate API synthesis backend."""

import logging
from datetime import datetime
from typing import Optional, Dict

import httpx
import replicate
from replicate.exceptions import ModelError, ReplicateError

from thumbforge.core.base_backend import BaseSynthesizer
from thumbforge.core.errors import SynthesisError, SynthesisFailure
from thumbforge.core.models import ImageModel, SynthesizedImage

logger = logging.getLogger(__name__)

# Markers Replicate uses when a safety checker refuses a prompt or output
CONTENT_REJECTION_MARKERS = ("nsfw", "safety", "flagged", "content policy", "inappropriate")


class ReplicateSynthesizer(BaseSynthesizer):
    """Backend implementation using Replicate API.

    Each requested image model is mapped to a Replicate model identifier.
    The URL Replicate returns is passed through untouched.

    Attributes:
        api_key: Replicate API token
        model_map: Image model value to Replicate model identifier
        client: Replicate client instance
    """

    DEFAULT_MODEL_MAP: Dict[str, str] = {
        ImageModel.DALL_E_3.value: "black-forest-labs/flux-dev",
        ImageModel.ROUTIX_V1.value: "black-forest-labs/flux-schnell",
        ImageModel.ROUTIX_V2.value: "stability-ai/sdxl",
    }

    # 16:9 thumbnails
    ASPECT_RATIO = "16:9"

    def __init__(
        self,
        api_key: str,
        model_map: Optional[Dict[str, str]] = None,
        timeout: int = 60
    ):
        """Initialize the Replicate backend.

        Args:
            api_key: Replicate API token
            model_map: Optional overrides of the image model mapping
            timeout: Request timeout in seconds

        Raises:
            ValueError: If API key is empty
        """
        super().__init__(api_key)

        if not api_key:
            raise ValueError("Replicate API key is required")

        self.model_map = {**self.DEFAULT_MODEL_MAP, **(model_map or {})}
        self.timeout = timeout
        self.client = replicate.Client(api_token=api_key, timeout=timeout)
        logger.info(f"Initialized Replicate backend with models: {self.model_map}")

    def synthesize(self, prompt: str, model: ImageModel) -> SynthesizedImage:
        """Generate an image using Replicate API.

        Args:
            prompt: The engineered prompt
            model: The requested image model

        Returns:
            SynthesizedImage with the URL Replicate returned

        Raises:
            SynthesisError: Typed by failure kind
        """
        provider_model = self.model_map.get(model.value, self.DEFAULT_MODEL_MAP[ImageModel.default().value])

        try:
            logger.info(f"Generating with {provider_model}, prompt: {prompt[:50]}...")
            output = self.client.run(
                provider_model,
                input={"prompt": prompt, "aspect_ratio": self.ASPECT_RATIO}
            )
        except ReplicateError as e:
            raise self._classify_api_error(e) from e
        except ModelError as e:
            error_msg = str(e).lower()
            logger.error(f"Replicate prediction failed: {e}")
            if any(marker in error_msg for marker in CONTENT_REJECTION_MARKERS):
                raise SynthesisError(
                    SynthesisFailure.CONTENT_REJECTED,
                    "The image service rejected this prompt"
                ) from e
            raise SynthesisError(SynthesisFailure.UNKNOWN, f"Replicate prediction failed: {e}") from e
        except httpx.TimeoutException as e:
            logger.warning(f"Replicate request timed out: {e}")
            raise SynthesisError(SynthesisFailure.TIMEOUT, "Image generation timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Replicate transport error: {e}")
            raise SynthesisError(SynthesisFailure.UNKNOWN, f"Replicate transport error: {e}") from e

        # Replicate returns either a URL, a file output, or a list of them
        if isinstance(output, list):
            if not output:
                raise SynthesisError(SynthesisFailure.UNKNOWN, "No image URL returned from generation")
            output = output[0]
        image_url = str(getattr(output, "url", output) or "")
        if not image_url:
            raise SynthesisError(SynthesisFailure.UNKNOWN, "No image URL returned from generation")

        logger.info(f"Replicate returned image: {image_url}")
        return SynthesizedImage(
            url=image_url,
            prompt=prompt,
            model=model,
            backend=self.name,
            timestamp=datetime.now(),
            metadata={
                "provider_model": provider_model,
                "aspect_ratio": self.ASPECT_RATIO,
            }
        )

    def _classify_api_error(self, error: ReplicateError) -> SynthesisError:
        error_msg = str(error).lower()
        status = getattr(error, "status", None)
        logger.error(f"Replicate API error: {error}")

        if status == 429 or "rate limit" in error_msg or "throttled" in error_msg:
            return SynthesisError(
                SynthesisFailure.RATE_LIMITED,
                "Rate limit exceeded. Please try again later."
            )
        if any(marker in error_msg for marker in CONTENT_REJECTION_MARKERS):
            return SynthesisError(
                SynthesisFailure.CONTENT_REJECTED,
                "The image service rejected this prompt"
            )
        if status in (408, 504) or "timed out" in error_msg or "timeout" in error_msg:
            return SynthesisError(SynthesisFailure.TIMEOUT, "Image generation timed out")
        return SynthesisError(SynthesisFailure.UNKNOWN, f"Replicate API error: {error}")

    def health_check(self) -> bool:
        """Check if the Replicate API is accessible.

        Returns:
            True if the backend is healthy, False otherwise
        """
        try:
            logger.debug("Performing health check...")
            # Listing models verifies API key and connectivity
            models_iter = self.client.models.list()
            next(iter(models_iter))
            logger.debug("Health check passed")
            return True
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return False

    @property
    def name(self) -> str:
        return "Replicate"

    @property
    def supported_models(self) -> list[str]:
        return sorted(set(self.model_map.values()))
